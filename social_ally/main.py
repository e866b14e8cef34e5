import logging

from fastapi import FastAPI, Request

from social_ally import containers
from social_ally.core.exception_handlers import register_exception_handlers
from social_ally.logging_config import setup_logging
from social_ally.routers import ally_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    container = containers.Container()
    settings = container.config.config()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = container  # type: ignore

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"Request: {request.method} {request.url.path}")
        response = await call_next(request)
        logger.info(f"Response: {response.status_code}")
        return response

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    register_exception_handlers(app)
    app.include_router(ally_router.router)
    return app


app = create_app()
