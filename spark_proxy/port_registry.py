"""Port discovery file shared with the co-located frontend."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .errors import RegistryWriteError
from .models import PortRegistry

logger = logging.getLogger(__name__)


def write_port_registry(path: str | Path, port: int) -> PortRegistry:
    """Overwrite the registry with ``port``. Raises RegistryWriteError."""
    record = PortRegistry(port=port, updated_at=datetime.now(timezone.utc))
    target = Path(path)
    temp_path = target.with_suffix(f"{target.suffix}.tmp")
    try:
        temp_path.write_text(record.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        temp_path.replace(target)
    except OSError as e:
        raise RegistryWriteError(f"Failed to write port registry {target}: {e}") from e
    return record


def read_port_registry(path: str | Path) -> PortRegistry | None:
    target = Path(path)
    try:
        return PortRegistry.model_validate_json(target.read_text(encoding="utf-8"))
    except (OSError, ValidationError):
        return None


def publish_port(path: str | Path, port: int) -> bool:
    """Persist the bound port; failures are logged and never raised."""
    try:
        write_port_registry(path, port)
    except RegistryWriteError as e:
        logger.error("%s (server keeps running)", e)
        return False
    logger.info("Port %d saved to %s", port, path)
    return True
