"""Spark Proxy: local gateway in front of the Spark chat-completion API."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Settings, get_settings
from .errors import ChatValidationError, UpstreamError
from .health_monitor import HealthMonitor
from .http_utils import payload_too_large_response
from .port_registry import read_port_registry
from .router_chat import CHAT_PATHS
from .router_chat import router as chat_router
from .router_status import STATUS_PATHS, process_uptime
from .router_status import router as status_router
from .status import StatusStore
from .upstream_client import UpstreamClient

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Origin, X-Requested-With, Content-Type, Accept, Authorization",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
}
AVAILABLE_ENDPOINTS = [CHAT_PATHS[0], STATUS_PATHS[0], "/health", "/"]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the proxy app with its own status store, upstream client and monitor."""
    settings = settings or get_settings()
    status = StatusStore()
    upstream = UpstreamClient(settings, status, transport=transport)
    monitor = HealthMonitor(upstream, interval_seconds=settings.health_interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: open the upstream pool and start probing."""
        configure_logging(settings.log_level)
        if not settings.upstream_api_key:
            logger.warning("SPARK_PROXY_UPSTREAM_API_KEY is empty; upstream calls will be rejected")
        await upstream.start()
        if settings.health_check_enabled:
            await monitor.start()
        logger.info("Spark Proxy started, upstream=%s", settings.upstream_base_url)

        yield

        await monitor.stop()
        await upstream.stop()
        logger.info("Spark Proxy stopped")

    app = FastAPI(title="Spark Proxy", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.status = status
    app.state.upstream = upstream
    app.state.monitor = monitor

    # --- Middleware (last registered runs first) ---

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    @app.middleware("http")
    async def cors(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.middleware("http")
    async def body_limit(request: Request, call_next):
        declared = request.headers.get("content-length")
        if declared is None:
            return await call_next(request)
        try:
            size = int(declared)
        except ValueError:
            response = JSONResponse(
                status_code=400,
                content={"error": "invalid request format", "message": "Malformed Content-Length header"},
            )
        else:
            if size <= settings.max_body_bytes:
                return await call_next(request)
            response = payload_too_large_response(settings.max_body_bytes)
        # Runs outside the cors middleware, so rejections carry the headers themselves.
        response.headers.update(CORS_HEADERS)
        return response

    # --- Error handling ---

    @app.exception_handler(ChatValidationError)
    async def validation_error_handler(request: Request, exc: ChatValidationError):
        logger.warning("Rejected chat request: %s", exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            logger.info("404 not found: %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Requested resource not found",
                    "path": request.url.path,
                    "method": request.method,
                    "availableEndpoints": AVAILABLE_ENDPOINTS,
                    "suggestion": "Check that the URL is correct",
                },
            )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(status_code=500, content={"error": "server error", "message": str(exc)})

    # --- Routes ---

    @app.get("/")
    async def root():
        return {
            "message": "Spark proxy server is running",
            "status": "running",
            "endpoints": {
                "spark": CHAT_PATHS[0],
                "test": STATUS_PATHS[0],
                "health": "/health",
                "root": "/",
            },
            "time": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy", "uptime": process_uptime()}

    @app.get("/proxy-port.json")
    async def proxy_port():
        if read_port_registry(settings.port_registry_path) is None:
            return JSONResponse(status_code=404, content={"error": "Port registry file does not exist"})
        return FileResponse(settings.port_registry_path, media_type="application/json")

    app.include_router(chat_router)
    app.include_router(status_router)
    return app
