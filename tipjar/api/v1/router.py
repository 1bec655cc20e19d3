from fastapi import APIRouter
from tipjar.api.v1 import admin_deadletter, health, stripe_webhook, tips

router = APIRouter()
router.include_router(health.router)
router.include_router(tips.router, tags=["tips"])
router.include_router(stripe_webhook.router, tags=["payments"])

# Admin
router.include_router(admin_deadletter.router, tags=["admin"])
