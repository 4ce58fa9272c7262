"""
StreamPulse - Main Application
Live system and capture-software metrics for streaming optimization
"""
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
import sys

from streampulse.core.config import settings
from streampulse.core.database import async_engine, AsyncSessionLocal, init_db, close_db
from streampulse.core.errors import TransportError, SessionNotFound
from streampulse.api import api_router
from streampulse.services.history_buffer import HistoryBuffer
from streampulse.services.history_service import SessionHistoryService
from streampulse.services.polling_controller import PollingController
from streampulse.services.session_history import SessionHistoryStore
from streampulse.services.severity import build_thresholds
from streampulse.services.system_monitor import BaseMetricsSource, SystemMonitor


def configure_logging():
    """Configure loguru sinks"""
    logger.remove()
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level="DEBUG" if settings.debug else "INFO"
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            level="DEBUG"
        )


def create_app(
    source: Optional[BaseMetricsSource] = None,
    engine: Optional[AsyncEngine] = None,
    auto_start_polling: Optional[bool] = None
) -> FastAPI:
    """Build the application; collaborators can be injected for tests"""
    db_engine = engine or async_engine
    session_factory = (
        async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
        if engine is not None else AsyncSessionLocal
    )
    start_polling = settings.auto_start_polling if auto_start_polling is None else auto_start_polling

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler"""
        logger.info(f"🚀 Starting {settings.app_name} v{settings.app_version}")

        logger.info("Initializing database...")
        await init_db(db_engine)

        thresholds = build_thresholds(settings.threshold_table())
        controller = PollingController(
            source=source or SystemMonitor(),
            history=HistoryBuffer(settings.history_capacity),
            thresholds=thresholds,
            default_interval_ms=settings.metrics_interval_ms
        )
        store = SessionHistoryStore(session_factory)
        controller.add_listener(store.record_snapshot)

        app.state.polling_controller = controller
        app.state.history_store = store
        app.state.history_service = SessionHistoryService(store, settings.comparison_locale)

        handle = controller.acquire() if start_polling else None

        logger.info(f"📈 {settings.app_name} is ready!")

        try:
            yield
        finally:
            logger.info("Shutting down...")
            if handle is not None:
                await handle.release()
            if store.current_session_id is not None:
                try:
                    await store.end_session()
                except TransportError as e:
                    logger.error(f"Error ending active session: {e}")
            if engine is None:
                await close_db()
            logger.info("👋 Goodbye!")

    app = FastAPI(
        title=settings.app_name,
        description="Live system metrics, severity alerting and session comparison for streaming",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TransportError)
    async def transport_error_handler(request: Request, exc: TransportError):
        logger.warning(f"Backend unavailable: {exc}")
        return JSONResponse(
            status_code=503,
            content={"detail": "Metrics backend unavailable", "message": str(exc)}
        )

    @app.exception_handler(SessionNotFound)
    async def session_not_found_handler(request: Request, exc: SessionNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "message": str(exc) if settings.debug else "An unexpected error occurred"
            }
        )

    # Include API routes
    app.include_router(api_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Basic health check endpoint"""
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version
        }

    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "streampulse.main:app",
        host="127.0.0.1",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
