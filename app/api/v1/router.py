from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.offers import router as offers_router
from app.api.v1.counter_offers import router as counter_offers_router
from app.api.v1.bids import router as bids_router
from app.api.v1.notifications import router as notifications_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# NEGOTIATION
# ------------------------------------------------------------------
v1_router.include_router(offers_router, tags=["offers"])
v1_router.include_router(counter_offers_router, tags=["counter-offers"])

# ------------------------------------------------------------------
# BIDDING
# ------------------------------------------------------------------
v1_router.include_router(bids_router, tags=["bids"])

# ------------------------------------------------------------------
# NOTIFICATIONS
# ------------------------------------------------------------------
v1_router.include_router(notifications_router, tags=["notifications"])
