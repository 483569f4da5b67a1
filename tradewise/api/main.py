"""
Tradewise REST API
==================

FastAPI application exposing the performance analytics and signal
aggregation engines as JSON endpoints.

Usage:
    uvicorn tradewise.api.main:app --reload --port 8000

Environment Variables:
    TRADEWISE_LOG_LEVEL: Root log level (default: INFO)
    TRADEWISE_LOG_JSON: Emit JSON structured logs (default: false)
    TRADEWISE_CACHE_TTL_SECONDS: Opportunity cache lifetime (default: 300)
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import configure_logging, get_settings
from ..config.logging import clear_request_context, set_request_context
from ..core.errors import TradewiseError
from .dependencies import Container
from .routers import register_routers
from .routers.base import get_timestamp

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    logger.info("Tradewise API ready")
    yield
    logger.info("Tradewise API shutting down")


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Application factory.

    Args:
        container: Engines to serve; a default container is built when omitted

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Tradewise API",
        description="Backtest performance analytics and signal aggregation",
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "System", "description": "Health checks"},
            {"name": "Analytics", "description": "Backtest performance metrics"},
            {"name": "Opportunities", "description": "Ranked investment opportunities"},
        ],
    )
    app.state.container = container or Container()

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Tag every log record of a request with its request ID."""
        request_id = set_request_context(request.headers.get(REQUEST_ID_HEADER))
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    register_routers(app)

    @app.exception_handler(TradewiseError)
    async def tradewise_exception_handler(request: Request, exc: TradewiseError):
        """Render Tradewise errors with their code and user message."""
        exc.log()
        return JSONResponse(
            status_code=exc.http_status,
            content={
                "success": False,
                "error": exc.user_message,
                "code": exc.code,
                "timestamp": get_timestamp(),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with structured response."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": exc.detail,
                "timestamp": get_timestamp(),
            },
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions with structured response."""
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "timestamp": get_timestamp(),
            },
        )

    return app


app = create_app()


def run_dev_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the development server."""
    import uvicorn

    uvicorn.run(
        "tradewise.api.main:app",
        host=host,
        port=port,
        reload=True,
        log_level="info",
    )


if __name__ == "__main__":
    run_dev_server()
