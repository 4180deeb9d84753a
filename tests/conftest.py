"""Shared fixtures: settings pointed at temp paths and a scriptable stub upstream."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from spark_proxy.config import Settings
from spark_proxy.main import create_app

CHAT_URL = "https://upstream.test/v2/chat/completions"
STATUS_URL = "https://upstream.test/v1/api/status"


class StubUpstream:
    """httpx.MockTransport handler that replays queued outcomes.

    Each outcome is a (status, body) tuple, an exception instance to raise,
    or a callable taking the request and returning an httpx.Response.
    The last outcome repeats once the queue is drained.
    """

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes) or [(200, {"ok": True})]
        self.requests: list[httpx.Request] = []

    def queue(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)

    def calls_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(request)
        status, body = outcome
        if isinstance(body, (dict, list)):
            return httpx.Response(status, content=json.dumps(body).encode(),
                                  headers={"content-type": "application/json"})
        return httpx.Response(status, text=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "upstream_base_url": "https://upstream.test",
        "upstream_api_key": "test-key",
        "health_check_enabled": False,
        "retry_delay_seconds": 0.0,
        "port_registry_path": str(tmp_path / "proxy-port.json"),
        "log_level": "DEBUG",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def upstream() -> StubUpstream:
    return StubUpstream()


@pytest.fixture
def app(settings, upstream):
    return create_app(settings, transport=upstream.transport)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
