"""Shared view of upstream health, written by the chat path and the health probe."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class UpstreamStatus:
    is_healthy: bool = False
    last_check: datetime | None = None
    retry_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "isHealthy": self.is_healthy,
            "lastCheck": self.last_check.isoformat() if self.last_check else None,
            "retryCount": self.retry_count,
        }


class StatusStore:
    """Holds one UpstreamStatus and replaces it whole on every observation."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status = UpstreamStatus()

    @property
    def current(self) -> UpstreamStatus:
        return self._status

    def _checked_at(self, previous: UpstreamStatus) -> datetime:
        now = datetime.now(timezone.utc)
        # Wall clock may step backwards; last_check must not.
        if previous.last_check is not None and now < previous.last_check:
            return previous.last_check
        return now

    def record_chat_success(self) -> UpstreamStatus:
        with self._lock:
            self._status = UpstreamStatus(
                is_healthy=True,
                last_check=self._checked_at(self._status),
                retry_count=0,
            )
            return self._status

    def record_chat_failure(self, is_healthy: bool | None = None) -> UpstreamStatus:
        """Count one failed proxied call. ``is_healthy=None`` keeps the current flag."""
        with self._lock:
            prev = self._status
            self._status = UpstreamStatus(
                is_healthy=prev.is_healthy if is_healthy is None else is_healthy,
                last_check=self._checked_at(prev),
                retry_count=prev.retry_count + 1,
            )
            return self._status

    def record_probe(self, is_healthy: bool) -> UpstreamStatus:
        with self._lock:
            prev = self._status
            self._status = replace(prev, is_healthy=is_healthy, last_check=self._checked_at(prev))
            return self._status
