from fastapi import FastAPI

from app.replenish.api import api_router
from app.replenish.core.config import settings
from app.replenish.core.errors import setup_exception_handlers
from app.replenish.core.logging import configure_logging
from app.replenish.middleware.observability import ObservabilityMiddleware
from app.replenish.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
