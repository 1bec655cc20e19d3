from __future__ import annotations

from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from tipjar.models.unattributed_event import UnattributedPaymentEvent


def safe_error_summary(err: str | None, max_len: int = 200) -> str | None:
    if not err:
        return None
    s = str(err).replace("\n", " ").replace("\r", " ").strip()
    if len(s) <= max_len:
        return s
    return s[:max_len] + "…"


class SqlDeadletterStore:
    """
    Persists authentic-but-unattributable payment events (auditable source of
    truth for manual reconciliation).
    """

    def __init__(self, db: AsyncSession):
        self._db = db

    async def record(
        self,
        *,
        stripe_event_id: str,
        stripe_session_id: str | None,
        event_type: str,
        error: str,
        payload: str,
    ) -> None:
        self._db.add(
            UnattributedPaymentEvent(
                stripe_event_id=stripe_event_id,
                stripe_session_id=stripe_session_id,
                event_type=event_type,
                error_summary=safe_error_summary(error),
                payload=payload,  # internal/auditable; API will not expose this
            )
        )
        try:
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise


async def list_unattributed_events(
    db: AsyncSession,
    *,
    limit: int = 50,
) -> dict[str, Any]:
    """
    List latest unattributed payment events (safe payload).
    No raw bodies: only error_summary.
    """
    events = (
        await db.execute(
            select(UnattributedPaymentEvent)
            .order_by(desc(UnattributedPaymentEvent.received_at))
            .limit(limit)
        )
    ).scalars().all()

    items: list[dict[str, Any]] = []
    for ev in events:
        items.append(
            {
                "id": str(ev.id),
                "stripe_event_id": ev.stripe_event_id,
                "stripe_session_id": ev.stripe_session_id,
                "event_type": ev.event_type,
                "error_summary": ev.error_summary,
                "received_at": ev.received_at,
            }
        )

    return {"items": items, "count": len(items)}
