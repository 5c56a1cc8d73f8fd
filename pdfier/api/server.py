from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pdfier import __version__
from pdfier.api.routes.chat import router as chat_router
from pdfier.api.routes.session import router as session_router
from pdfier.api.routes.tools import router as tools_router
from pdfier.errors import (
    BackendError,
    ConfigError,
    LoginRequiredError,
    PdfierError,
    QuotaExceededError,
    SessionNotReadyError,
    ToolError,
)
from pdfier.factory import Services, build_services
from pdfier.session.context import restore_session

logger = logging.getLogger(__name__)


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(QuotaExceededError)
    async def quota_exceeded(request: Request, exc: QuotaExceededError):
        return _error(429, str(exc))

    @app.exception_handler(LoginRequiredError)
    async def login_required(request: Request, exc: LoginRequiredError):
        return _error(401, str(exc))

    @app.exception_handler(SessionNotReadyError)
    async def session_not_ready(request: Request, exc: SessionNotReadyError):
        return _error(503, str(exc))

    @app.exception_handler(BackendError)
    async def backend_error(request: Request, exc: BackendError):
        return _error(exc.status_code, exc.detail)

    @app.exception_handler(ToolError)
    async def tool_error(request: Request, exc: ToolError):
        if exc.status_code:
            return _error(exc.status_code, exc.detail)
        # No response at all means the backend was unreachable
        status_code = 502 if exc.__cause__ is not None else 400
        return _error(status_code, exc.detail)

    @app.exception_handler(ConfigError)
    async def config_error(request: Request, exc: ConfigError):
        logger.error("Configuration error: %s", exc)
        return _error(500, str(exc))

    @app.exception_handler(httpx.HTTPError)
    async def network_error(request: Request, exc: httpx.HTTPError):
        logger.error("Backend unreachable: %s", exc)
        return _error(502, "Network error or unable to connect to the server.")

    @app.exception_handler(PdfierError)
    async def pdfier_error(request: Request, exc: PdfierError):
        return _error(400, str(exc))


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        services: Optional Services bundle (built from the environment if not provided)
    """
    if services is None:
        load_dotenv()
        services = build_services()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        """Recover the session before serving requests; close local storage on shutdown."""
        outcome = await restore_session(services.session)
        logger.info("Session restored at startup: %s", outcome.value)
        yield
        services.close()

    app = FastAPI(
        title="PDFier API",
        description="PDFier session, PDF tools and document chat",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    app.include_router(session_router, prefix="/api")
    app.include_router(tools_router, prefix="/api")
    app.include_router(chat_router, prefix="/api")

    @app.get("/")
    async def root():
        return {"message": "PDFier API", "version": __version__}

    return app
