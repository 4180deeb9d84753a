from functools import lru_cache
from pathlib import Path

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    upstream_base_url: str = "https://spark-api-open.xf-yun.com"
    upstream_chat_path: str = "/v2/chat/completions"
    upstream_status_path: str = "/v1/api/status"
    upstream_api_key: str = ""
    host: str = "0.0.0.0"
    base_port: int = 3001
    max_port: int = 65535
    health_check_enabled: bool = True
    health_interval_seconds: float = 300.0
    request_timeout_seconds: float = 30.0
    probe_timeout_seconds: float = 5.0
    upstream_max_attempts: int = 2
    retry_delay_seconds: float = 1.0
    max_body_bytes: int = 1024 * 1024
    port_registry_path: str = "proxy-port.json"
    shutdown_timeout_seconds: float | None = 30.0
    log_level: str = "INFO"
    config_path: str = ""

    model_config = {"env_prefix": "SPARK_PROXY_"}

    @property
    def chat_url(self) -> str:
        return f"{self.upstream_base_url.rstrip('/')}{self.upstream_chat_path}"

    @property
    def status_url(self) -> str:
        return f"{self.upstream_base_url.rstrip('/')}{self.upstream_status_path}"


@lru_cache
def get_settings() -> Settings:
    """Environment-only settings, built on first use."""
    return Settings()


def load_settings(config_path: str | None = None) -> Settings:
    """Build settings from the environment, overlaid with an optional YAML file."""
    base = Settings()
    path = config_path or base.config_path
    if not path:
        return base
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Proxy config not found: {file_path}")
    try:
        with open(file_path) as f:
            overrides = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Malformed proxy config {file_path}: {e}") from e
    if not isinstance(overrides, dict):
        raise ValueError(f"Proxy config must be a mapping: {file_path}")
    return Settings(**{**overrides, "config_path": str(file_path)})
