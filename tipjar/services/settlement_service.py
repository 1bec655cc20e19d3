"""
Tip settlement: applies a verified Stripe checkout completion to the support
ledger, the creator's earnings balance and the analytics stream.

Redelivery safety comes from the ledger's conditional insert on the checkout
session id. Balance and analytics are only touched after a genuinely new
ledger row, so a redelivered event is acknowledged without crediting twice.
"""
from __future__ import annotations

import enum
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Callable

import stripe
from pydantic import ValidationError

from tipjar.core.errors import InvalidSignature, TransientStoreFailure
from tipjar.core.logging import get_logger
from tipjar.core.stripe_config import SETTLEMENT_EVENT_TYPES, UNPAID_PAYMENT_STATUS
from tipjar.schemas.stripe_event import CheckoutSession, StripeEventEnvelope
from tipjar.services.settlement_stores import (
    AnalyticsStore,
    BalanceStore,
    DeadletterStore,
    LedgerStore,
    SupportRecord,
    TipAnalyticsEvent,
)

logger = get_logger(__name__)

DEFAULT_SIGNATURE_TOLERANCE = 300


class SettlementStatus(str, enum.Enum):
    settled = "settled"
    already_processed = "already_processed"
    ignored = "ignored"
    malformed = "malformed"


@dataclass(frozen=True)
class SettlementResult:
    status: SettlementStatus
    event_id: str | None = None
    session_id: str | None = None
    detail: str | None = None


def build_support_record(session: CheckoutSession) -> SupportRecord:
    meta = session.metadata
    supporter_name = None
    if not meta.anonymous and session.customer_details is not None:
        supporter_name = session.customer_details.name
    return SupportRecord(
        user_id=meta.user_id,
        amount=session.amount_total,
        currency=session.currency,
        message=meta.message,
        is_anonymous=meta.anonymous,
        supporter_name=supporter_name,
        stripe_session_id=session.id,
    )


def _raw_session_id(envelope: StripeEventEnvelope) -> str | None:
    obj = envelope.data.get("object")
    if isinstance(obj, dict) and isinstance(obj.get("id"), str):
        return obj["id"]
    return None


class SettlementReconciler:
    """
    Stateless between deliveries; safe to construct per request.

    `transaction` wraps the ledger insert and balance increment so they commit
    or roll back together. Leaving it unset is only safe for stores that cannot
    fail between the two writes: without it a failed increment leaves the ledger
    row behind, every redelivery then reports already_processed, and the
    creator is never credited.
    """

    def __init__(
        self,
        *,
        webhook_secret: str,
        ledger: LedgerStore,
        balances: BalanceStore,
        analytics: AnalyticsStore,
        deadletters: DeadletterStore | None = None,
        transaction: Callable[[], AsyncContextManager[Any]] | None = None,
        tolerance: int = DEFAULT_SIGNATURE_TOLERANCE,
    ):
        if not webhook_secret:
            # An empty HMAC key would accept signatures anyone can forge
            raise ValueError("Stripe webhook secret is not configured")
        self._webhook_secret = webhook_secret
        self._ledger = ledger
        self._balances = balances
        self._analytics = analytics
        self._deadletters = deadletters
        self._transaction = transaction or nullcontext
        self._tolerance = tolerance

    def verify_signature(self, raw_body: bytes, signature_header: str | None) -> str:
        """Return the decoded payload if Stripe-Signature matches raw_body."""
        if not signature_header:
            raise InvalidSignature("Missing Stripe-Signature header")
        try:
            payload = raw_body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidSignature("Payload is not valid UTF-8") from e

        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature_header,
                self._webhook_secret,
                self._tolerance,
            )
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(str(e)) from e
        return payload

    async def handle_completion_event(
        self,
        raw_body: bytes,
        signature_header: str | None,
    ) -> SettlementResult:
        # 1) Authenticity (raises InvalidSignature, nothing written)
        payload = self.verify_signature(raw_body, signature_header)

        try:
            envelope = StripeEventEnvelope.model_validate_json(payload)
        except ValidationError as e:
            return await self._reject_malformed(
                event_id="unknown",
                event_type="unknown",
                session_id=None,
                payload=payload,
                error=str(e),
            )

        # 2) Only paid checkout sessions settle tips
        if envelope.type not in SETTLEMENT_EVENT_TYPES:
            logger.debug("Ignoring Stripe event %s of type %s", envelope.id, envelope.type)
            return SettlementResult(
                SettlementStatus.ignored,
                event_id=envelope.id,
                detail=f"unhandled event type {envelope.type}",
            )

        # 3) Attribution comes from checkout metadata only
        try:
            session = CheckoutSession.model_validate(envelope.data.get("object"))
        except ValidationError as e:
            return await self._reject_malformed(
                event_id=envelope.id,
                event_type=envelope.type,
                session_id=_raw_session_id(envelope),
                payload=payload,
                error=str(e),
            )

        if (
            envelope.type == "checkout.session.completed"
            and session.payment_status == UNPAID_PAYMENT_STATUS
        ):
            logger.info("Checkout session %s completed unpaid; waiting for async payment", session.id)
            return SettlementResult(
                SettlementStatus.ignored,
                event_id=envelope.id,
                session_id=session.id,
                detail="payment not yet captured",
            )

        record = build_support_record(session)

        # 4) + 5) ledger insert and balance increment, one unit of work
        try:
            async with self._transaction():
                inserted = await self._ledger.insert_if_absent(session.id, record)
                if inserted:
                    await self._balances.increment_earnings(record.user_id, record.amount)
        except Exception as e:
            logger.exception("Settlement write failed for session %s (event %s)", session.id, envelope.id)
            raise TransientStoreFailure(f"Settlement write failed for session {session.id}") from e

        if not inserted:
            logger.info("Checkout session %s already settled; event %s acknowledged", session.id, envelope.id)
            return SettlementResult(
                SettlementStatus.already_processed,
                event_id=envelope.id,
                session_id=session.id,
            )

        # 6) best-effort
        await self._emit_analytics(record)

        logger.info(
            "Tip recorded for %s: $%.2f %s (session %s)",
            session.metadata.username,
            record.amount / 100,
            record.currency,
            session.id,
        )
        return SettlementResult(
            SettlementStatus.settled,
            event_id=envelope.id,
            session_id=session.id,
        )

    async def _emit_analytics(self, record: SupportRecord) -> None:
        event = TipAnalyticsEvent(
            user_id=record.user_id,
            amount=record.amount,
            metadata={
                "session_id": record.stripe_session_id,
                "anonymous": record.is_anonymous,
                "message": record.message,
            },
        )
        try:
            await self._analytics.append(event)
        except Exception:
            # Ledger already guards against double-crediting; never fail the webhook here
            logger.exception("Analytics write failed for session %s", record.stripe_session_id)

    async def _reject_malformed(
        self,
        *,
        event_id: str,
        event_type: str,
        session_id: str | None,
        payload: str,
        error: str,
    ) -> SettlementResult:
        logger.error(
            "Unattributable payment event %s (%s, session=%s) needs manual reconciliation: %s",
            event_id,
            event_type,
            session_id,
            error,
        )
        if self._deadletters is not None:
            try:
                await self._deadletters.record(
                    stripe_event_id=event_id,
                    stripe_session_id=session_id,
                    event_type=event_type,
                    error=error,
                    payload=payload,
                )
            except Exception:
                logger.exception("Failed to store unattributed payment event %s", event_id)

        return SettlementResult(
            SettlementStatus.malformed,
            event_id=event_id,
            session_id=session_id,
            detail=error,
        )
