"""
PrintJob - Print Job Service

Main FastAPI application entry point.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
from typing import Optional
import asyncio
import logging

from printjob import __version__
from printjob.api.routes import print_jobs, printers
from printjob.core.config import Settings, get_settings
from printjob.core.database import create_engine_from_url, create_session_factory, init_db
from printjob.services.dispatcher import Dispatcher
from printjob.services.janitor import JanitorSweep
from printjob.services.job_store import JobStore
from printjob.services.print_sink import PrintSink, build_print_sink
from printjob.services.printer_registry import PrinterRegistry

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_app(settings: Optional[Settings] = None, sink: Optional[PrintSink] = None) -> FastAPI:
    """
    Build the application.

    A ready-made sink can be passed in; otherwise the one selected by
    PRINT_SINK is built at startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.
        Handles startup and shutdown events.
        """
        # === STARTUP ===
        logger.info("Starting PrintJob service...")

        # Log configuration (safely)
        db_url = settings.DATABASE_URL
        if "@" in db_url:
            logger.info(f"Database: ...@{db_url.split('@')[-1]}")
        else:
            logger.info(f"Database: {db_url}")

        engine = create_engine_from_url(db_url)
        await init_db(engine)
        logger.info("Database tables initialized.")
        session_factory = create_session_factory(engine)

        print_sink = sink or build_print_sink(settings)
        logger.info(f"Print sink: {print_sink.name}")

        store = JobStore(session_factory)
        registry = PrinterRegistry(session_factory)
        janitor = JanitorSweep(store, settings.JOB_RETENTION_SECONDS)
        dispatcher = Dispatcher(
            store,
            registry,
            print_sink,
            janitor=janitor,
            sink_timeout=settings.PRINT_SINK_TIMEOUT,
            document_root=settings.FILE_STORAGE_PATH or None,
        )

        if await registry.seed_default(settings.DEFAULT_PRINTER_ID):
            logger.info(f"Default printer seeded from settings: {settings.DEFAULT_PRINTER_ID}")

        app.state.engine = engine
        app.state.job_store = store
        app.state.registry = registry
        app.state.janitor = janitor
        app.state.dispatcher = dispatcher
        app.state.sink = print_sink

        sweep_task = None
        if settings.JANITOR_INTERVAL_SECONDS > 0:
            sweep_task = asyncio.create_task(janitor.run_forever(settings.JANITOR_INTERVAL_SECONDS))

        logger.info("PrintJob service started successfully!")

        yield  # Application runs here

        # === SHUTDOWN ===
        logger.info("Shutting down PrintJob service...")
        if sweep_task is not None:
            sweep_task.cancel()
            try:
                await sweep_task
            except asyncio.CancelledError:
                pass
        await print_sink.close()
        await engine.dispose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Print job submission and lifecycle tracking",
        version=__version__,
        lifespan=lifespan
    )
    app.state.settings = settings

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": {"kind": "invalid_request", "message": str(exc.errors())}}
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

    # =========================================================================
    # ROUTES
    # =========================================================================

    app.include_router(
        print_jobs.router,
        prefix=f"{settings.API_V1_STR}/printjobs",
        tags=["Print Jobs"]
    )

    app.include_router(
        printers.router,
        prefix=f"{settings.API_V1_STR}/printers",
        tags=["Printers"]
    )

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    @app.get("/", tags=["Health"])
    def root():
        """Root endpoint - health check."""
        return {
            "service": "PrintJob",
            "status": "running",
            "version": __version__
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        """
        Detailed health check endpoint.
        Checks database and print sink connectivity.
        """
        health = {
            "status": "healthy",
            "database": "unknown",
            "print_sink": "unknown"
        }

        try:
            async with app.state.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            health["database"] = "connected"
        except Exception as e:
            health["database"] = f"error: {str(e)}"
            health["status"] = "degraded"

        if await app.state.sink.ping():
            health["print_sink"] = "connected"
        else:
            health["print_sink"] = "unreachable"
            health["status"] = "degraded"

        return health

    return app


configure_logging(get_settings().LOG_LEVEL)
app = create_app()
