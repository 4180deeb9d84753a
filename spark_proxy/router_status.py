"""Diagnostic status routes: GET /api/test, /test, /status."""

import logging
import platform
import time
from datetime import datetime, timezone

import psutil
from fastapi import APIRouter, Request

from .router_chat import CHAT_PATHS
from .status import StatusStore

router = APIRouter(tags=["status"])
logger = logging.getLogger(__name__)

STATUS_PATHS = ("/api/test", "/test", "/status")


def process_uptime() -> float:
    return max(0.0, time.time() - psutil.Process().create_time())


def format_uptime(seconds: float) -> str:
    s = int(seconds)
    days, s = divmod(s, 86400)
    hours, s = divmod(s, 3600)
    minutes, s = divmod(s, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{s}s")
    return " ".join(parts)


def memory_snapshot() -> dict:
    proc = psutil.Process()
    info = proc.memory_info()
    return {
        "rss": info.rss,
        "vms": info.vms,
        "percent": round(proc.memory_percent(), 2),
    }


async def service_status(request: Request):
    status: StatusStore = request.app.state.status
    server_info = {
        "status": "ok",
        "message": "Proxy service is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "nodeRuntimeVersion": f"{platform.python_implementation()} {platform.python_version()}",
        "memory": memory_snapshot(),
        "apiEndpoint": CHAT_PATHS[0],
        "apiStatus": status.current.to_dict(),
        "serverUptime": format_uptime(process_uptime()),
    }
    logger.info("Status check: %s", server_info["apiStatus"])
    return server_info


for _path in STATUS_PATHS:
    router.add_api_route(_path, service_status, methods=["GET"])
