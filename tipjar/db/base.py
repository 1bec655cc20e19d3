"""
Database base configuration
"""
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

# Create declarative base for SQLAlchemy models
Base = declarative_base()


# Import all models here to ensure they are registered with SQLAlchemy
def import_models():
    """Import all models to register them with SQLAlchemy"""
    from tipjar.models import analytics_event  # noqa: F401
    from tipjar.models import profile  # noqa: F401
    from tipjar.models import support_message  # noqa: F401
    from tipjar.models import unattributed_event  # noqa: F401


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
