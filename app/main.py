from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import get_settings
from app.db import init_db
from app.infra.logging_config import LoggingConfig, get_logger
from app.routers import media, outbound, webhooks
from app.routers.conversations_router import conversations_router

logger = get_logger("app")


def create_app(testing: bool = False) -> FastAPI:
    """Build the FastAPI app. In testing mode the schema is left to the test fixtures."""
    settings = get_settings()
    LoggingConfig(settings.log_level)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if not testing and settings.auto_create_schema:
            init_db()
        if not settings.meta_app_secret:
            logger.warning(
                "META_APP_SECRET is not set: webhook signatures will not be verified"
            )
        yield

    app = FastAPI(
        title="Meta Inbox API",
        description="WhatsApp conversation ingestion, history and media service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(webhooks.router)
    app.include_router(outbound.router)
    app.include_router(media.router)
    app.include_router(conversations_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=get_settings().port)
