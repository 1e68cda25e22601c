"""FastAPI server for healthwatch."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from healthwatch import __version__
from healthwatch.api.service_routes import service_router
from healthwatch.api.system_routes import system_router
from healthwatch.config import settings
from healthwatch.database import Database
from healthwatch.errors import ServiceNotFoundError, StoreError
from healthwatch.health.engine import build_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database and cache on startup, release them on shutdown."""
    db = Database(settings.database_path)
    app.state.db = db

    engine = build_engine(settings, db=db)
    app.state.engine = engine
    logger.info(
        "Health engine ready: db=%s cache=%s", db.path, settings.cache_backend,
    )

    yield

    # Shutdown
    engine.close()
    db.close()


def _not_found(request: Request, exc: ServiceNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"success": False, "message": "Service not found"})


def _store_failure(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal Server Error"})


def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="healthwatch - Endpoint Health Monitor",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ServiceNotFoundError, _not_found)
    app.add_exception_handler(StoreError, _store_failure)
    app.add_exception_handler(StarletteHTTPException, _http_error)

    app.include_router(service_router, prefix="/api")
    app.include_router(system_router, prefix="/api")

    return app


app = create_app()
