"""FastAPI application factory.

Run locally:
    python -m lapublica_backup --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lapublica_backup import __version__
from lapublica_backup.api import create_error_response
from lapublica_backup.api.routes import router
from lapublica_backup.config import Settings, get_settings
from lapublica_backup.db import Database
from lapublica_backup.db.repositories import Store
from lapublica_backup.services import BackupService

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the backup API application.

    Args:
        settings: Application settings, the global ones when omitted

    Returns:
        FastAPI application
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = Database(settings.database_path)
        await db.connect()
        await db.migrate()
        store = Store(db)
        app.state.database = db
        app.state.store = store
        app.state.backup_service = BackupService(store, settings)
        logger.info("Backup API ready (database=%s)", settings.database_path)

        yield

        await db.close()

    app = FastAPI(
        title="La Pública Granular Backup API",
        version=__version__,
        description="Selective export and idempotent import of platform data",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.include_router(router, prefix=settings.api_prefix)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=create_error_response(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=create_error_response("Petició invàlida", str(exc.errors())),
        )

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    return app
