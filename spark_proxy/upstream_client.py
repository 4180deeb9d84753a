import asyncio
import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from .config import Settings
from .errors import (
    ChatValidationError,
    UpstreamHTTPError,
    UpstreamRequestError,
    UpstreamUnreachableError,
)
from .http_utils import response_details
from .models import ChatRequest
from .status import StatusStore

logger = logging.getLogger(__name__)

_LOG_BODY_CHARS = 300


def validate_chat_request(payload: Any) -> ChatRequest:
    """Check the inbound body before anything goes upstream."""
    if not isinstance(payload, dict):
        raise ChatValidationError("Request body must be a JSON object")
    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as e:
        raise ChatValidationError("Missing required 'messages' field or it is not an array") from e


class UpstreamClient:
    """Async HTTP client for the chat-completion upstream.

    Every forwarded call and every probe ends in exactly one StatusStore update.
    """

    def __init__(
        self,
        settings: Settings,
        status: StatusStore,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._status = status
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        self._client = httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=True,
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        )

    async def stop(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        """Return initialized client or raise a clear runtime error."""
        if self._client is None:
            raise RuntimeError("Upstream client is not started")
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.upstream_api_key}"}

    def _build_chat_request(self, raw_body: bytes) -> httpx.Request:
        try:
            return self._require_client().build_request(
                "POST",
                self._settings.chat_url,
                content=raw_body,
                headers={**self._auth_headers(), "Content-Type": "application/json"},
                timeout=self._settings.request_timeout_seconds,
            )
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise UpstreamRequestError(f"Could not build upstream request: {e}") from e

    async def _send_with_retry(self, request: httpx.Request) -> httpx.Response:
        """Send ``request``, retrying transport failures and 5xx responses."""
        attempts = max(1, self._settings.upstream_max_attempts)
        client = self._require_client()

        for attempt in range(1, attempts + 1):
            last_attempt = attempt == attempts
            try:
                resp = await client.send(request)
            except httpx.UnsupportedProtocol as e:
                raise UpstreamRequestError(f"Could not build upstream request: {e}") from e
            except httpx.TransportError as e:
                if last_attempt:
                    raise UpstreamUnreachableError(
                        f"No response from upstream: {type(e).__name__}: {e}"
                    ) from e
                reason = f"{type(e).__name__}: {e}"
            except httpx.RequestError as e:
                # Redirect loops and undecodable bodies are not retried.
                raise UpstreamUnreachableError(
                    f"No usable response from upstream: {type(e).__name__}: {e}"
                ) from e
            else:
                if resp.status_code < 500 or last_attempt:
                    return resp
                reason = f"status {resp.status_code}"

            delay = self._settings.retry_delay_seconds * (2 ** (attempt - 1))
            logger.warning(
                "Upstream attempt %d/%d failed: %s (retry in %.1fs)",
                attempt, attempts, reason, delay,
            )
            await asyncio.sleep(delay)

        raise UpstreamUnreachableError("Upstream retry budget exhausted")

    async def forward_chat(self, payload: Any, raw_body: bytes | None = None) -> httpx.Response:
        """Validate and forward one chat-completion call.

        Returns the 2xx upstream response. Raises ChatValidationError without
        touching the upstream, or an UpstreamError subclass after recording
        the failure.
        """
        chat = validate_chat_request(payload)
        if raw_body is None:
            raw_body = json.dumps(payload).encode()

        logger.info("Forwarding chat request upstream, messages=%d", len(chat.messages))
        logger.debug("Chat request body: %s", raw_body[:_LOG_BODY_CHARS].decode(errors="replace"))

        try:
            request = self._build_chat_request(raw_body)
            resp = await self._send_with_retry(request)
        except UpstreamUnreachableError as e:
            logger.error("No response received, request timed out or network failed: %s", e)
            self._status.record_chat_failure(is_healthy=False)
            raise
        except UpstreamRequestError as e:
            logger.error("Upstream request construction failed: %s", e)
            self._status.record_chat_failure()
            raise

        logger.info("Upstream responded with status %d", resp.status_code)
        if resp.is_success:
            self._status.record_chat_success()
            return resp

        details = response_details(resp)
        logger.error("Upstream error status=%d body=%s", resp.status_code, details)
        if resp.status_code == 401:
            logger.error("Upstream rejected the credential; check the API key")
            self._status.record_chat_failure(is_healthy=False)
        else:
            self._status.record_chat_failure()
        raise UpstreamHTTPError(resp.status_code, details)

    async def probe(self) -> bool:
        """Lightweight reachability check against the upstream status endpoint."""
        try:
            resp = await self._require_client().get(
                self._settings.status_url,
                headers=self._auth_headers(),
                timeout=self._settings.probe_timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.warning("Upstream probe failed: %s: %s", type(e).__name__, e)
            self._status.record_probe(False)
            return False

        healthy = resp.is_success
        if healthy:
            logger.info("Upstream probe ok")
        else:
            logger.warning("Upstream probe returned status %d", resp.status_code)
        self._status.record_probe(healthy)
        return healthy

