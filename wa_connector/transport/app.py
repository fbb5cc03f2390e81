"""
WhatsApp Connector Application

FastAPI application exposing one WhatsApp engine client per tenant as a
REST + Server-Sent Events API. This is the main entry point for running
the connector.

The engine is configured via environment variables (see
``wa_connector.engine.factory``). Connector tuning:
- WAC_INBOX_SIZE: Per-tenant engine event inbox size (default: 256)
- WAC_SUBSCRIBER_QUEUE_SIZE: Per-stream pending event queue (default: 100)
- WAC_STREAM_KEEPALIVE: Seconds between SSE keep-alive comments (default: 15)
- WAC_MEDIA_TIMEOUT: Timeout for media downloads in seconds (default: 30)
- LOG_LEVEL: Root log level (default: INFO)

Environment variables can be loaded from a .env file in the project root.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException

# Load environment variables from .env file
load_dotenv()

from wa_connector import __version__
from wa_connector.engine import EngineFactory, create_engine_factory_from_env
from wa_connector.errors import ConnectorError
from wa_connector.media import MediaFetcher
from wa_connector.session import SessionRegistry
from wa_connector.transport import messaging, sessions

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

BANNER = "WA QR Connector up"


@dataclass
class AppSettings:
    """
    Connector settings that are not specific to an engine backend.

    Attributes:
        inbox_size: Bounded engine event inbox per tenant
        subscriber_queue_size: Bounded pending event queue per SSE stream
        stream_keepalive_seconds: Idle seconds before a keep-alive comment
        media_timeout: Timeout for outbound media downloads
    """
    inbox_size: int = 256
    subscriber_queue_size: int = 100
    stream_keepalive_seconds: float = 15.0
    media_timeout: float = 30.0


def app_settings_from_env() -> AppSettings:
    """Create AppSettings from environment variables."""
    return AppSettings(
        inbox_size=int(os.getenv("WAC_INBOX_SIZE", "256")),
        subscriber_queue_size=int(os.getenv("WAC_SUBSCRIBER_QUEUE_SIZE", "100")),
        stream_keepalive_seconds=float(os.getenv("WAC_STREAM_KEEPALIVE", "15")),
        media_timeout=float(os.getenv("WAC_MEDIA_TIMEOUT", "30")),
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


async def connector_error_handler(request: Request, exc: ConnectorError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return _error(exc.status_code, str(exc))


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in errors
    ) or "Invalid request"
    return _error(400, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(500, str(exc) or "Internal error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Sessions are created lazily by requests; shutdown stops every session
    and releases the media download client.
    """
    logger.info("Starting WhatsApp connector...")
    yield

    logger.info("Shutting down WhatsApp connector...")
    await app.state.registry.shutdown()
    await app.state.media_fetcher.aclose()
    logger.info("WhatsApp connector stopped")


def create_app(
    engine_factory: EngineFactory | None = None,
    settings: AppSettings | None = None,
) -> FastAPI:
    """
    Build the connector application.

    Args:
        engine_factory: Allocates one engine client per tenant
            (default: built from WAC_* environment variables)
        settings: Connector settings (default: from environment)
    """
    settings = settings or app_settings_from_env()
    engine_factory = engine_factory or create_engine_factory_from_env()

    app = FastAPI(
        title="WhatsApp Connector",
        description="Multi-tenant WhatsApp client exposed as REST + Server-Sent Events",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.registry = SessionRegistry(
        engine_factory,
        inbox_size=settings.inbox_size,
        subscriber_queue_size=settings.subscriber_queue_size,
    )
    app.state.media_fetcher = MediaFetcher(timeout=settings.media_timeout)

    app.add_exception_handler(ConnectorError, connector_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(sessions.router)
    app.include_router(messaging.router)

    @app.get("/", response_class=PlainTextResponse)
    async def banner():
        return BANNER

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        registry: SessionRegistry = app.state.registry
        return {
            "ok": True,
            "status": "healthy",
            "sessions": registry.session_count,
            "online": registry.online_count,
            "uptime": round(time.monotonic() - app.state.started_at, 3),
        }

    return app


app = create_app()
