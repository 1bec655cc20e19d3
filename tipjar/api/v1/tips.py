from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tipjar.core.config import settings
from tipjar.db.session import get_async_db
from tipjar.schemas.tip import RecentTipRead, TipCheckoutCreate, TipCheckoutRead
from tipjar.services.tip_service import list_recent_tips, start_tip_checkout

router = APIRouter()


@router.post("/tips/checkout", response_model=TipCheckoutRead)
async def create_tip_checkout(
    tip_in: TipCheckoutCreate,
    db: AsyncSession = Depends(get_async_db),
):
    return await start_tip_checkout(db, tip_in)


@router.get("/tips/success")
async def tip_success(
    session_id: str | None = Query(None),
    username: str | None = Query(None),
):
    """
    Landing point after Checkout. Settlement happens via the webhook, so this
    only sends the supporter back to the creator's page.
    """
    if not session_id or not username:
        return RedirectResponse(f"{settings.APP_URL}/")
    return RedirectResponse(f"{settings.APP_URL}/{username}?success=true")


@router.get("/profiles/{username}/tips", response_model=list[RecentTipRead])
async def get_recent_tips(
    username: str,
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_recent_tips(db, username=username, limit=limit)
