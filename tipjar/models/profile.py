import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tipjar.db.base import Base, utcnow


class Profile(Base):
    """
    Public creator profile. Only the columns the tip flow reads or writes
    are mapped here; the rest of the profile is owned by the profile editor.
    """
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Identity-backend user id (opaque string)
    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        index=True,
    )

    min_tip_amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=50,
        server_default="50",
    )

    # Stripe Connect account receiving transfers
    stripe_account_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Cents. Only ever incremented by settled tips.
    total_earnings: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        server_default="0",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Profile id={self.id} username={self.username} total_earnings={self.total_earnings}>"
