from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from cloudnotes.api.auth import router as auth_router
from cloudnotes.api.images import router as images_router
from cloudnotes.api.notes import router as notes_router
from cloudnotes.config import Settings, configure_logging
from cloudnotes.errors import NotesError
from cloudnotes.services.notes_service import NoteService
from cloudnotes.storage.blob_store import LocalBlobStore
from cloudnotes.storage.kv_store import open_store
from cloudnotes.storage.users_store import UsersStore
from cloudnotes.utils.auth_gate import AuthGate
from cloudnotes.utils.auth_hash import build_context
from cloudnotes.utils.jwt_auth import JwtIdentityProvider

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotesError)
    async def notes_error(request: Request, exc: NotesError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        return _error(400, f"{where}: {message}" if where else message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API with every service constructed once and kept on app.state."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="Cloud Notes API")
    app.state.settings = settings

    kv = open_store(settings.storage_backend, settings.data_dir)
    identity = JwtIdentityProvider(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        exp_minutes=settings.jwt_exp_minutes,
    )
    app.state.kv = kv
    app.state.identity = identity
    app.state.auth_gate = AuthGate(identity)
    app.state.pwd_context = build_context(settings.bcrypt_rounds)
    app.state.users = UsersStore(kv)
    app.state.notes = NoteService(kv)
    app.state.blobs = LocalBlobStore(settings.data_dir, settings.images_base_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    install_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(notes_router)
    app.include_router(images_router)
    if settings.images_base_url.startswith("/"):
        app.mount(
            settings.images_base_url,
            StaticFiles(directory=settings.data_dir / "images", check_dir=False),
            name="images",
        )

    @app.get("/health")
    def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    logger.info("Notes API ready (storage=%s, data_dir=%s)", settings.storage_backend, settings.data_dir)
    return app
