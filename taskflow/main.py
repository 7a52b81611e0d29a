"""Taskflow ASGI application"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config.settings import settings
from .api.routes import api_router
from .api.middleware import CORRELATION_HEADER, CorrelationIdMiddleware, register_error_handlers
from .repositories.mongo_client import create_indexes, close_connection, health_check
from .scheduler.automation_scheduler import start_scheduler, stop_scheduler
from .utils.logger import setup_logging, get_logger

setup_logging()
logger = get_logger(__name__)

APP_NAME = "Taskflow"
APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Index the collections and run the automation scheduler for the app's lifetime"""
    try:
        create_indexes()
    except Exception as e:
        logger.error(f"Index creation failed, continuing without: {e}")

    if settings.automation_scheduler_enabled:
        start_scheduler()
    logger.info(f"{APP_NAME} {APP_VERSION} started", extra={"action": "startup"})

    yield

    stop_scheduler()
    close_connection()
    logger.info(f"{APP_NAME} stopped", extra={"action": "shutdown"})


def create_app() -> FastAPI:
    docs = settings.debug
    app = FastAPI(
        title=APP_NAME,
        description="Task workflow engine with conditional and automatic transitions",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if docs else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if docs else None,
    )

    allow_all = settings.cors_origins.strip() == "*"
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type", CORRELATION_HEADER],
        expose_headers=[CORRELATION_HEADER],
    )
    app.add_middleware(CorrelationIdMiddleware)
    register_error_handlers(app)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health():
        mongo = health_check()
        return {
            "status": "healthy" if mongo.get("status") == "healthy" else "degraded",
            "version": APP_VERSION,
            "environment": settings.environment,
            "scheduler_enabled": settings.automation_scheduler_enabled,
            "mongo": mongo,
        }

    @app.get("/", tags=["Health"])
    async def root():
        return {"name": APP_NAME, "version": APP_VERSION, "api": "/api/v1/workflow"}

    return app


app = create_app()
