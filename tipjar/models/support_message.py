import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tipjar.db.base import Base, utcnow


class SupportMessage(Base):
    """
    Ledger entry for one settled tip.
    stripe_session_id is UNIQUE: it is the idempotency key for webhook redelivery.
    """
    __tablename__ = "support_messages"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Creator receiving the tip
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")

    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    supporter_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    stripe_session_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
