from fastapi import APIRouter

from app.replenish.core.config import settings
from app.replenish.routers.health import router as health_router
from app.replenish.routers.metrics import router as metrics_router
from app.replenish.routers.requisitions import router as requisitions_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(requisitions_router, tags=["requisitions"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
