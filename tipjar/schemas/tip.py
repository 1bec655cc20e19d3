from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class TipCheckoutCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    # Cents. Minimums are enforced against the profile, not here.
    amount: int
    message: str | None = Field(default=None, max_length=500)
    anonymous: bool = False


class TipCheckoutRead(BaseModel):
    session_id: str
    url: str | None


class RecentTipRead(BaseModel):
    id: UUID
    amount: int
    currency: str
    message: str | None
    supporter_name: str | None
    is_anonymous: bool
    created_at: datetime

    class Config:
        from_attributes = True
