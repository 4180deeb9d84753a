"""HTTP helpers for proxy route handlers."""

import json
from typing import Any

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse

from .errors import ChatValidationError


def response_details(resp: httpx.Response) -> Any:
    """Return the upstream JSON body, or a bounded slice of its text."""
    try:
        return resp.json()
    except ValueError:
        return resp.text[:1000]


def payload_too_large_response(limit: int) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={
            "error": "payload too large",
            "message": f"Request body exceeds the {limit} byte limit",
        },
    )


class BodyTooLarge(Exception):
    def __init__(self, limit: int):
        super().__init__(f"Request body exceeds the {limit} byte limit")
        self.limit = limit


async def read_json_body(request: Request, limit: int) -> tuple[Any, bytes]:
    """Read at most ``limit`` bytes of body and decode it as JSON."""
    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise BodyTooLarge(limit)
        chunks.append(chunk)
    raw = b"".join(chunks)
    try:
        return json.loads(raw), raw
    except ValueError as e:
        raise ChatValidationError("Request body is not valid JSON") from e
