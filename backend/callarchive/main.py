"""ASGI entry-point for the call archive.

This module
1. instantiates the :class:`fastapi.FastAPI` application and the archive
   services it exposes (index, pipeline, query/delete service, capacity cache);
2. wires the API routers located in ``callarchive.api``;
3. registers global exception handlers and middleware; and
4. on start-up, creates the index schema (rebuilding it from the archive
   until a rebuild has completed) and starts the ingest workers, the
   directory watcher and the periodic reconciler.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from callarchive.api import api_router
from callarchive.config import Settings, settings as default_settings
from callarchive.db.database import make_engine
from callarchive.logging_config import setup_logging
from callarchive.services.call_index import CallIndex
from callarchive.services.calls import CallService
from callarchive.services.capacity import CapacityCache
from callarchive.services.pipeline import IngestionPipeline
from callarchive.utils.storage import ensure_dir_exists
from callarchive.workers.ingest_queue import IngestQueue
from callarchive.workers.reconciler import Reconciler
from callarchive.workers.watcher import CaptureWatcher


# ---------------------------------------------------------------------------
# Logging must be configured as soon as possible so that any errors during
# import/start-up are captured.
# ---------------------------------------------------------------------------
setup_logging()
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:  # noqa: D401 – factory nomenclature is fine
    """Wire and return the FastAPI application instance."""

    settings = settings or default_settings

    app = FastAPI(
        title="Call Archive API",
        version="0.1.0",
        docs_url="/api/docs",
    )

    # ------------------------------------------------------------------
    # Services – constructed eagerly, nothing touches disk until start-up.
    # ------------------------------------------------------------------

    index = CallIndex(make_engine(settings.DATABASE_URL, echo=settings.DB_ECHO))
    pipeline = IngestionPipeline(index, settings.ARCHIVE_DIR, min_duration=settings.MIN_CALL_LENGTH)
    capacity = CapacityCache(settings.ARCHIVE_DIR, ttl=settings.CAPACITY_CACHE_TTL)
    ingest_queue = IngestQueue(pipeline, workers=settings.INGEST_WORKERS)

    app.state.settings = settings
    app.state.index = index
    app.state.pipeline = pipeline
    app.state.capacity = capacity
    app.state.call_service = CallService(index, settings.ARCHIVE_DIR, capacity)
    app.state.ingest_queue = ingest_queue
    app.state.watcher = CaptureWatcher(
        settings.WATCH_DIR,
        ingest_queue,
        stability_threshold=settings.STABILITY_THRESHOLD,
        poll_interval=settings.STABILITY_POLL_INTERVAL,
    )
    app.state.reconciler = Reconciler(
        settings.WATCH_DIR,
        settings.ARCHIVE_DIR,
        pipeline,
        ingest_queue,
        interval=settings.RESCAN_INTERVAL,
        quiet_period=settings.STABILITY_THRESHOLD,
    )

    # ------------------------------------------------------------------
    # Start-up / shutdown
    # ------------------------------------------------------------------

    @app.on_event("startup")
    async def _startup() -> None:  # noqa: D401
        logger.info("Running start-up checks …")

        for path in (settings.WATCH_DIR, settings.ARCHIVE_DIR):
            try:
                ensure_dir_exists(Path(path))
            except Exception as exc:  # pragma: no cover
                logger.critical("Cannot create/access directory %s – %s", path, exc)
            else:
                writable = os.access(str(path), os.W_OK)
                logger.info("Directory %s is %swritable", path, "" if writable else "NOT ")

        # Losing the index is unrecoverable; let uvicorn abort start-up.
        try:
            needs_rebuild = index.create_schema()
        except Exception as exc:
            logger.critical("Cannot open or create the call index: %s", exc, exc_info=True)
            raise

        if needs_rebuild:
            await app.state.reconciler.rebuild_index()

        await ingest_queue.start()
        await app.state.watcher.start()
        await app.state.reconciler.start()
        logger.info("Start-up finished.")

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # noqa: D401
        await app.state.reconciler.stop()
        await app.state.watcher.stop()
        await ingest_queue.stop()
        index.engine.dispose()
        logger.info("Shutdown finished.")

    # ------------------------------------------------------------------
    # Exception handlers
    # ------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(  # noqa: D401
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        logger.error("Request validation error: %s", exc.errors())
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(  # noqa: D401
        _request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        logger.error("HTTP exception %s: %s", exc.status_code, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def _generic_error_handler(  # noqa: D401
        _request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

    # ------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------
    # Routers
    # ------------------------------------------------------------------

    app.include_router(api_router)

    @app.get("/api/health")
    async def _health() -> dict[str, str]:  # noqa: D401
        return {"status": "ok"}

    return app


# Instantiate at import time so `uvicorn callarchive.main:app` works.
app: FastAPI = create_app()


def run() -> None:
    """Console entry point: serve ``app`` on the configured port."""
    uvicorn.run(app, host="0.0.0.0", port=default_settings.PORT)


if __name__ == "__main__":
    run()
