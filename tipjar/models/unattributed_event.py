from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tipjar.db.base import Base, utcnow


class UnattributedPaymentEvent(Base):
    """
    Authentic settlement events we could not attribute to a creator.
    Kept for manual reconciliation; nothing was credited for them.
    """
    __tablename__ = "unattributed_payment_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    stripe_event_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(255), nullable=False)

    # Keep API "safe": only error_summary is exposed; payload stays internal.
    error_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[str | None] = mapped_column(Text, nullable=True)

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
