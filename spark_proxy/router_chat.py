"""Chat-completion proxy routes.

All aliases share one handler:
  POST /api/spark
  POST /spark
  POST /v2/chat/completions
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response

from .http_utils import BodyTooLarge, payload_too_large_response, read_json_body
from .upstream_client import UpstreamClient

router = APIRouter(tags=["chat"])
logger = logging.getLogger(__name__)

CHAT_PATHS = ("/api/spark", "/spark", "/v2/chat/completions")


def _get_upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


async def chat_completions(request: Request):
    """Forward a chat request upstream and pass the reply through verbatim."""
    limit = request.app.state.settings.max_body_bytes
    try:
        payload, raw_body = await read_json_body(request, limit)
    except BodyTooLarge:
        return payload_too_large_response(limit)

    resp = await _get_upstream(request).forward_chat(payload, raw_body)
    return Response(
        content=resp.content,
        status_code=200,
        media_type=resp.headers.get("content-type", "application/json"),
    )


for _path in CHAT_PATHS:
    router.add_api_route(_path, chat_completions, methods=["POST"])
