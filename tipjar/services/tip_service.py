from __future__ import annotations

import stripe
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipjar.core.config import settings
from tipjar.core.logging import get_logger
from tipjar.models.profile import Profile
from tipjar.models.support_message import SupportMessage
from tipjar.schemas.tip import RecentTipRead, TipCheckoutCreate, TipCheckoutRead
from tipjar.services.stripe_service import create_tip_checkout_session

logger = get_logger(__name__)


async def get_profile_by_username(db: AsyncSession, username: str) -> Profile:
    res = await db.execute(select(Profile).where(Profile.username == username))
    profile = res.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


async def start_tip_checkout(db: AsyncSession, tip_in: TipCheckoutCreate) -> TipCheckoutRead:
    """
    Validate the tip against platform and creator minimums, then open a
    Stripe Checkout session for it.
    """
    if tip_in.amount < settings.MIN_TIP_AMOUNT_CENTS:
        raise HTTPException(status_code=400, detail="Invalid username or amount")

    profile = await get_profile_by_username(db, tip_in.username)

    if tip_in.amount < profile.min_tip_amount:
        raise HTTPException(
            status_code=400,
            detail=f"Minimum tip amount is ${profile.min_tip_amount / 100:.2f}",
        )

    try:
        session = create_tip_checkout_session(
            profile,
            amount=tip_in.amount,
            message=tip_in.message,
            anonymous=tip_in.anonymous,
        )
    except stripe.StripeError as e:
        logger.error("Stripe checkout error for %s: %s", profile.username, e)
        raise HTTPException(status_code=502, detail="Failed to create checkout session")

    return TipCheckoutRead(session_id=session.id, url=session.url)


async def list_recent_tips(
    db: AsyncSession,
    *,
    username: str,
    limit: int = 10,
) -> list[RecentTipRead]:
    profile = await get_profile_by_username(db, username)

    tips = (
        await db.execute(
            select(SupportMessage)
            .where(SupportMessage.user_id == profile.user_id)
            .order_by(SupportMessage.created_at.desc())
            .limit(limit)
        )
    ).scalars().all()

    items: list[RecentTipRead] = []
    for tip in tips:
        item = RecentTipRead.model_validate(tip)
        # Anonymous supporters are never named publicly
        if item.is_anonymous:
            item.supporter_name = None
        items.append(item)
    return items
