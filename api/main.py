"""
API - Application.

============================================================
RESPONSIBILITY
============================================================
HTTP surface over the verification core.

- POST /verify                      verify a batch
- GET  /alerts                      list alerts
- POST /alerts/{id}/resolve         resolve an alert
- POST /batches/{batch_id}/recall   recall a batch
- GET  /scans                       recent scan log
- GET  /audit-logs                  audit trail

Error mapping:
- ValidationError        -> 400
- NotFoundError          -> 404
- SourceUnavailableError -> 503
- DatabasePersistenceError -> 503
============================================================
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import alerts, audit_logs, batches, scans, verify
from core.exceptions import NotFoundError, SourceUnavailableError, ValidationError
from database.engine import (
    DatabasePersistenceError,
    create_database_engine,
    create_session_factory,
)
from database.repository import RelationalStore
from verification.config import VerificationConfig
from verification.orchestrator import VerificationOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)


def _error(status_code: int, exc: Exception) -> JSONResponse:
    payload = exc.to_dict() if hasattr(exc, "to_dict") else {"type": type(exc).__name__}
    payload["message"] = str(exc)
    return JSONResponse(status_code=status_code, content={"success": False, "error": payload})


def create_app(
    config: Optional[VerificationConfig] = None,
    orchestrator: Optional[VerificationOrchestrator] = None,
    store: Optional[RelationalStore] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Collaborators not passed in are wired from `config`
    (or the environment).
    """
    if store is None or orchestrator is None:
        config = config or VerificationConfig.from_env()
    if store is None:
        store = RelationalStore(create_session_factory(create_database_engine(config.database_url)))
    if orchestrator is None:
        orchestrator = build_orchestrator(config, store=store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.orchestrator.close()

    app = FastAPI(
        title="PharmaShield Verification API",
        description="Batch verification and scan risk assessment.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        return _error(400, exc)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, exc)

    @app.exception_handler(SourceUnavailableError)
    async def handle_source_unavailable(request: Request, exc: SourceUnavailableError):
        logger.warning(f"[api] {request.url.path}: {exc}")
        return _error(503, exc)

    @app.exception_handler(DatabasePersistenceError)
    async def handle_persistence_error(request: Request, exc: DatabasePersistenceError):
        logger.error(f"[api] {request.url.path}: {exc}")
        return _error(503, exc)

    app.include_router(verify.router)
    app.include_router(alerts.router)
    app.include_router(batches.router)
    app.include_router(scans.router)
    app.include_router(audit_logs.router)

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Verification API is running"}

    return app
