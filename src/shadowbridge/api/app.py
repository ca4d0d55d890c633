"""FastAPI application factory."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shadowbridge import __version__
from shadowbridge.config import Settings, get_settings
from shadowbridge.errors import NotConfiguredError, ValidationError
from shadowbridge.services import RelayServices, build_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    await app.state.services.startup()
    yield
    # Shutdown
    await app.state.services.shutdown()


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


async def not_configured_handler(request: Request, exc: NotConfiguredError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"error": str(exc)}
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[RelayServices] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    services = services or build_services(settings)

    app = FastAPI(
        title="ShadowBridge Relayer",
        description="Relays compliance-gated transfers to the destination chain",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.services = services
    app.state.started_at = time.monotonic()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(NotConfiguredError, not_configured_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Register routes
    from shadowbridge.api.routes import health, simulate, stats, transfers

    app.include_router(health.router, tags=["Health"])
    app.include_router(transfers.router, prefix="/transfers", tags=["Transfers"])
    app.include_router(stats.router, tags=["Stats"])
    if not settings.is_production:
        app.include_router(simulate.router, prefix="/simulate", tags=["Simulation"])

    return app
