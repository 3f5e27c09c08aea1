"""
main.py
-------
FastAPI application factory and entry point.

Application lifecycle:
  1. App is created by create_application().
  2. lifespan context manager runs on startup / shutdown.
  3. Routers are registered with their URL prefixes.
  4. Exception handlers map domain errors to status codes and normalise
     unexpected errors.

Run with:
    uvicorn main:app --reload              # development
    uvicorn main:app --workers 1           # one workspace cache per process
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from letter_numbering.api.routes import access_entries, companies, letters, workspace
from letter_numbering.core.config import settings
from letter_numbering.core.errors import (
    AllocationError,
    LetterNumberingError,
    NotFound,
    PermissionDenied,
    ScopeNotReady,
    StoreError,
    ValidationError,
)
from letter_numbering.core.logging import configure_logging, get_logger
from letter_numbering.domain.state import Workspace
from letter_numbering.services.workspace_service import WorkspaceService
from letter_numbering.stores.factory import Backends, build_backends

logger = get_logger(__name__)

# Most specific first: CollectionNotFound is a StoreError
ERROR_STATUS = (
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ValidationError, 422),
    (AllocationError, status.HTTP_409_CONFLICT),
    (StoreError, status.HTTP_502_BAD_GATEWAY),
    (ScopeNotReady, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: LetterNumberingError) -> int:
    for kind, code in ERROR_STATUS:
        if isinstance(exc, kind):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup / shutdown lifecycle hook.

    Startup:
      - Configure structured logging
      - Build the configured backends (unless a test injected its own)
      - Load the workspace; store failures are logged, never fatal

    Shutdown:
      - Close HTTP clients / dispose the DB engine
    """
    configure_logging()
    logger.info(
        "Starting up",
        app=settings.APP_NAME,
        env=settings.APP_ENV,
        debug=settings.DEBUG,
        bootstrap_mode=settings.ACCESS_BOOTSTRAP_MODE,
    )
    backends: Optional[Backends] = getattr(app.state, "backends", None)
    if backends is None:
        backends = build_backends(settings)
        app.state.backends = backends
    if getattr(app.state, "workspace", None) is None:
        app.state.workspace = Workspace()
        await WorkspaceService.refresh_all(app.state.workspace, backends.record_store)
    yield
    logger.info("Shutting down, closing backends")
    await backends.aclose()


def create_application(
    backends: Optional[Backends] = None,
    initial_workspace: Optional[Workspace] = None,
) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Issues sequential per-company, per-year letter reference numbers "
            "with role and company scoped access control."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    # Injected collaborators win over the configured ones (tests, tooling)
    app.state.backends = backends
    app.state.workspace = initial_workspace

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(workspace.router)
    app.include_router(companies.router)
    app.include_router(letters.router)
    app.include_router(access_entries.router)

    # ── Exception Handlers ────────────────────────────────────────────────────

    @app.exception_handler(LetterNumberingError)
    async def domain_exception_handler(
        request: Request, exc: LetterNumberingError
    ) -> JSONResponse:
        code = status_for(exc)
        log = logger.warning if code < 500 or isinstance(exc, ScopeNotReady) else logger.error
        log(
            "Request failed",
            path=request.url.path,
            method=request.method,
            error_kind=type(exc).__name__,
            error=exc.message,
            status_code=code,
        )
        return JSONResponse(status_code=code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # ── Health Check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], summary="Service health check")
    async def health() -> dict:
        return {"status": "ok", "app": settings.APP_NAME, "env": settings.APP_ENV}

    return app


app = create_application()
