# tipjar/api/v1/stripe_webhook.py

from fastapi import APIRouter, Depends, HTTPException, Request

from tipjar.api.deps import get_settlement_reconciler
from tipjar.core.errors import InvalidSignature, TransientStoreFailure
from tipjar.core.stripe_config import STRIPE_SIGNATURE_HEADER
from tipjar.services.settlement_service import SettlementReconciler

router = APIRouter()


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    reconciler: SettlementReconciler = Depends(get_settlement_reconciler),
):
    # Signature covers the exact bytes, so never re-serialize the body
    payload = await request.body()
    sig_header = request.headers.get(STRIPE_SIGNATURE_HEADER)

    try:
        result = await reconciler.handle_completion_event(payload, sig_header)
    except InvalidSignature as e:
        raise HTTPException(status_code=400, detail=f"Invalid webhook signature: {str(e)}")
    except TransientStoreFailure:
        # Nothing was committed; Stripe will retry
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    # settled / already_processed / ignored / malformed are all acknowledged:
    # redelivery cannot change their outcome
    return {"status": "ok", "result": result.status.value}
