from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tipjar.core.config import settings
from tipjar.db.session import get_async_db
from tipjar.services.deadletter_service import SqlDeadletterStore
from tipjar.services.settlement_service import SettlementReconciler
from tipjar.services.settlement_stores import (
    SqlAnalyticsStore,
    SqlBalanceStore,
    SqlLedgerStore,
)


# -----------------------------
# Dependency: Settlement reconciler bound to this request's session
# -----------------------------
async def get_settlement_reconciler(
    db: AsyncSession = Depends(get_async_db),
) -> SettlementReconciler:
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise HTTPException(status_code=500, detail="STRIPE_WEBHOOK_SECRET not configured")

    return SettlementReconciler(
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        ledger=SqlLedgerStore(db),
        balances=SqlBalanceStore(db),
        analytics=SqlAnalyticsStore(db),
        deadletters=SqlDeadletterStore(db),
        transaction=db.begin,
        tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
    )


# -----------------------------
# Dependency: Admin key guard
# -----------------------------
async def require_admin(
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> None:
    if not settings.ADMIN_API_ENABLED:
        raise HTTPException(status_code=404, detail="Admin API not enabled")
    if not settings.ADMIN_KEY:
        raise HTTPException(status_code=500, detail="ADMIN_KEY not configured")
    if not x_admin_key or x_admin_key != settings.ADMIN_KEY:
        raise HTTPException(status_code=403, detail="Forbidden")
