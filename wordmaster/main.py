from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.middleware.cors import CORSMiddleware

from wordmaster.config.logging import get_logger, setup_logging
from wordmaster.config.settings import settings
from wordmaster.infra.database import get_database
from wordmaster.v1.catalog.routes import router as catalog_router
from wordmaster.v1.core.exceptions import (
    RequestContextMiddleware,
    WordMasterException,
    general_exception_handler,
    http_exception_handler,
    wordmaster_exception_handler,
)
from wordmaster.v1.core.registries import scheduler_registry
from wordmaster.v1.healthz import router as health_router
from wordmaster.v1.review.registry_init import init_review_registries
from wordmaster.v1.review.routes import router as review_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup and release connections on shutdown."""
    database = get_database(settings)
    await database.init_models()
    logger.info("database_ready", url=database.engine.url.render_as_string(hide_password=True))
    yield
    await database.close()


def create_app(init_database: bool = True) -> FastAPI:
    """Create and configure the FastAPI application."""

    setup_logging()
    init_review_registries()

    app = FastAPI(
        title=settings.app_name,
        description="Vocabulary study service with SM-2 review scheduling",
        version=settings.version,
        debug=settings.debug,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
        lifespan=lifespan if init_database else None,
    )

    app.add_middleware(RequestContextMiddleware)

    # CORS for local development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(WordMasterException, wordmaster_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(catalog_router, prefix="/v1")
    app.include_router(review_router, prefix="/v1")

    # No runtime re-registration outside development
    if settings.environment != "development":
        scheduler_registry.freeze()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "wordmaster.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
