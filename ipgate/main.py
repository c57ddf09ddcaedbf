"""ipgate FastAPI application factory and installers.

The application is assembled by the bootstrap sequencer in a fixed order:

  1. create_app()          → bare FastAPI instance (no middleware, no routes)
  2. install_access_gate() → AccessControlMiddleware wraps every request
  3. install_routes()      → application routes (GET /)

The gate must be installed before any route so that no request can reach a
handler without passing admission control.
"""

from __future__ import annotations

import os

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from fastapi.routing import APIRouter

from ipgate import __version__
from ipgate.allowlist.checker import AllowListChecker
from ipgate.constants import ROOT_BODY
from ipgate.gate.middleware import AccessControlMiddleware
from ipgate.utils.logger import get_logger

logger = get_logger(__name__)


# ─── Routers ──────────────────────────────────────────────────────────────────

root_router = APIRouter(tags=["root"])


@root_router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    """Placeholder root page."""
    return ROOT_BODY


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create a bare ipgate FastAPI application.

    Swagger UI, ReDoc and the OpenAPI schema are disabled unless DEBUG=true;
    when enabled they still sit behind the access gate.

    Returns:
        FastAPI application with the global exception handler registered and
        no middleware or routes.
    """
    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title="ipgate",
        description="TLS-terminating HTTP server behind a client IP allow-list",
        version=__version__,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return Response(status_code=500)

    return application


def install_access_gate(application: FastAPI, checker: AllowListChecker) -> None:
    """Register the access-control gate on ``application``."""
    application.add_middleware(AccessControlMiddleware, checker=checker)
    logger.info("Access gate installed", allowlist_path=checker.path)


def install_routes(application: FastAPI) -> None:
    """Register application routes on ``application``."""
    application.include_router(root_router)
    logger.info("Routes installed", routes=[route.path for route in root_router.routes])
