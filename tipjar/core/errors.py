from __future__ import annotations


class SettlementError(Exception):
    """Base class for tip settlement failures."""


class InvalidSignature(SettlementError):
    """Webhook signature missing or not produced with our signing secret.

    Not retryable from our side: the delivery is rejected and nothing is written.
    """


class TransientStoreFailure(SettlementError):
    """Ledger or balance write failed; the processor should redeliver."""


class AnalyticsWriteFailure(SettlementError):
    """Analytics append failed. Logged, never propagated."""
