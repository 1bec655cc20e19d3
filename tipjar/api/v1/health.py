"""
Health check endpoints for monitoring application status
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tipjar.core.config import settings
from tipjar.core.logging import get_logger
from tipjar.db.session import get_async_db
from tipjar.models.common import HealthResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/health")

VERSION = "1.0.0"


@router.get("", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint to verify the API is running
    """
    return HealthResponse(
        status="healthy",
        message="Tipjar API is running",
        timestamp=datetime.now(timezone.utc),
        version=VERSION,
    )


async def _database_status(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error("Readiness: database unreachable: %s", e)
        return "unhealthy"
    return "healthy"


@router.get("/ready", response_model=HealthResponse)
async def readiness_check(
    response: Response,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Readiness check endpoint for Kubernetes deployments.
    Answers 503 while the database is unreachable or Stripe is not configured,
    since webhook deliveries and checkouts would fail.
    """
    checks = {
        "database": await _database_status(db),
        "stripe_webhook_secret": "configured" if settings.STRIPE_WEBHOOK_SECRET else "missing",
        "stripe_api_key": "configured" if settings.STRIPE_API_KEY else "missing",
    }
    ready = checks["database"] == "healthy" and "missing" not in checks.values()

    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="degraded",
            message="Tipjar API is not ready to accept requests",
            timestamp=datetime.now(timezone.utc),
            version=VERSION,
            checks=checks,
        )

    return HealthResponse(
        status="ready",
        message="Tipjar API is ready to accept requests",
        timestamp=datetime.now(timezone.utc),
        version=VERSION,
        checks=checks,
    )
