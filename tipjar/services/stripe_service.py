import stripe

from tipjar.core.config import settings
from tipjar.core.stripe_config import TIP_CURRENCY, platform_fee_cents
from tipjar.models.profile import Profile


def create_tip_checkout_session(
    profile: Profile,
    *,
    amount: int,
    message: str | None,
    anonymous: bool,
):
    """
    Create a hosted Checkout session for a one-off tip.

    The metadata is what the webhook uses to attribute the payment, so it must
    carry the creator's user_id; nothing is looked up again on settlement.
    """
    params = dict(
        mode="payment",
        payment_method_types=["card"],
        line_items=[
            {
                "price_data": {
                    "currency": TIP_CURRENCY,
                    "product_data": {
                        "name": f"Support @{profile.username}",
                        "description": message or "Thank you for your support!",
                    },
                    "unit_amount": amount,
                },
                "quantity": 1,
            }
        ],
        success_url=f"{settings.APP_URL}/{profile.username}?success=true",
        cancel_url=f"{settings.APP_URL}/{profile.username}",
        metadata={
            "username": profile.username,
            "user_id": profile.user_id,
            "message": message or "",
            "anonymous": "true" if anonymous else "false",
        },
    )

    # Connected creators receive the funds directly, minus the platform fee
    if profile.stripe_account_id:
        params["payment_intent_data"] = {
            "application_fee_amount": platform_fee_cents(amount),
            "transfer_data": {"destination": profile.stripe_account_id},
        }

    return stripe.checkout.Session.create(api_key=settings.STRIPE_API_KEY, **params)
