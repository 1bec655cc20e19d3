from tipjar.core.config import settings

STRIPE_SIGNATURE_HEADER = "stripe-signature"

# Event types that carry a paid tip checkout session
SETTLEMENT_EVENT_TYPES = frozenset({
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
})

# checkout.session.completed arrives with "unpaid" for delayed payment methods;
# those settle later through checkout.session.async_payment_succeeded
UNPAID_PAYMENT_STATUS = "unpaid"

TIP_CURRENCY = "usd"


def platform_fee_cents(amount: int) -> int:
    """Application fee kept by the platform on connected-account tips."""
    return round(amount * settings.PLATFORM_FEE_PERCENT / 100)
