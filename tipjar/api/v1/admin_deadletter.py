from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipjar.api.deps import require_admin
from tipjar.db.session import get_async_db
from tipjar.services.deadletter_service import list_unattributed_events

router = APIRouter()


@router.get("/admin/deadletter/payment_events", dependencies=[Depends(require_admin)])
async def admin_list_unattributed_events(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_unattributed_events(db, limit=limit)
