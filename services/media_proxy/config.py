"""Environment-driven settings for the media proxy."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from services.common.sidecar_runtime_utils import (
    DEFAULT_UPSTREAM_CONNECT_TIMEOUT,
    DEFAULT_UPSTREAM_READ_TIMEOUT,
    env_float,
    env_int,
    env_str,
)

SERVICE_NAME = "media-proxy"
DEFAULT_CACHE_TTL = 600  # 10 minutes
DEFAULT_EXTRACTOR_BINARY = "yt-dlp"
DEFAULT_EXTRACTOR_TIMEOUT = 120.0


class ProxySettings(BaseModel):
    """Runtime knobs. Defaults bind the loopback interface on port 4000."""

    model_config = ConfigDict(frozen=True)

    listen_address: str = "127.0.0.1"
    listen_port: int = 4000
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL
    extractor_binary_path: str = DEFAULT_EXTRACTOR_BINARY
    extractor_timeout_seconds: float = DEFAULT_EXTRACTOR_TIMEOUT
    upstream_connect_timeout: float = DEFAULT_UPSTREAM_CONNECT_TIMEOUT
    upstream_read_timeout: float = DEFAULT_UPSTREAM_READ_TIMEOUT

    @classmethod
    def from_env(cls) -> "ProxySettings":
        return cls(
            listen_address=env_str("MEDIA_PROXY_LISTEN_ADDRESS", "127.0.0.1"),
            listen_port=env_int("MEDIA_PROXY_LISTEN_PORT", "4000"),
            cache_ttl_seconds=env_float("MEDIA_PROXY_CACHE_TTL", str(DEFAULT_CACHE_TTL)),
            extractor_binary_path=env_str("MEDIA_PROXY_EXTRACTOR_BINARY", DEFAULT_EXTRACTOR_BINARY),
            extractor_timeout_seconds=env_float(
                "MEDIA_PROXY_EXTRACTOR_TIMEOUT", str(DEFAULT_EXTRACTOR_TIMEOUT)
            ),
            upstream_connect_timeout=env_float(
                "MEDIA_PROXY_UPSTREAM_CONNECT_TIMEOUT", str(DEFAULT_UPSTREAM_CONNECT_TIMEOUT)
            ),
            upstream_read_timeout=env_float(
                "MEDIA_PROXY_UPSTREAM_READ_TIMEOUT", str(DEFAULT_UPSTREAM_READ_TIMEOUT)
            ),
        )
