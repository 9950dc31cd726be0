import logging

import httpx
import pytest

from services.common.logging_utils import resolve_log_level, with_log_context
from services.common.sidecar_runtime_utils import (
    build_upstream_client,
    env_float,
    env_int,
    env_str,
)
from services.media_proxy.config import ProxySettings

SETTINGS_ENV_KEYS = [
    "MEDIA_PROXY_LISTEN_ADDRESS",
    "MEDIA_PROXY_LISTEN_PORT",
    "MEDIA_PROXY_CACHE_TTL",
    "MEDIA_PROXY_EXTRACTOR_BINARY",
    "MEDIA_PROXY_EXTRACTOR_TIMEOUT",
    "MEDIA_PROXY_UPSTREAM_CONNECT_TIMEOUT",
    "MEDIA_PROXY_UPSTREAM_READ_TIMEOUT",
]


def test_env_helpers_use_default_when_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MP_TEST_MISSING", raising=False)

    assert env_int("MP_TEST_MISSING", "11") == 11
    assert env_float("MP_TEST_MISSING", "2.5") == 2.5
    assert env_str("MP_TEST_MISSING", "fallback") == "fallback"


def test_env_str_treats_empty_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MP_TEST_EMPTY", "")

    assert env_str("MP_TEST_EMPTY", "fallback") == "fallback"


def test_env_int_raises_value_error_for_invalid_value(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MP_TEST_INVALID_INT", "not-a-number")

    with pytest.raises(ValueError):
        env_int("MP_TEST_INVALID_INT", "3")


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in SETTINGS_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)

    settings = ProxySettings.from_env()

    assert settings.listen_address == "127.0.0.1"
    assert settings.listen_port == 4000
    assert settings.cache_ttl_seconds == 600
    assert settings.extractor_binary_path == "yt-dlp"
    assert settings.extractor_timeout_seconds == 120
    assert settings.upstream_connect_timeout == 30
    assert settings.upstream_read_timeout == 300


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MEDIA_PROXY_LISTEN_ADDRESS", "0.0.0.0")
    monkeypatch.setenv("MEDIA_PROXY_LISTEN_PORT", "8080")
    monkeypatch.setenv("MEDIA_PROXY_CACHE_TTL", "30")
    monkeypatch.setenv("MEDIA_PROXY_EXTRACTOR_BINARY", "/opt/yt-dlp/bin/yt-dlp")
    monkeypatch.setenv("MEDIA_PROXY_EXTRACTOR_TIMEOUT", "12.5")

    settings = ProxySettings.from_env()

    assert settings.listen_address == "0.0.0.0"
    assert settings.listen_port == 8080
    assert settings.cache_ttl_seconds == 30
    assert settings.extractor_binary_path == "/opt/yt-dlp/bin/yt-dlp"
    assert settings.extractor_timeout_seconds == 12.5


async def test_upstream_client_does_not_follow_redirects() -> None:
    async with build_upstream_client(connect_timeout=5, read_timeout=60) as client:
        assert client.follow_redirects is False
        assert client.timeout == httpx.Timeout(5, read=60)


@pytest.mark.parametrize(
    ("log_level", "debug", "expected"),
    [
        ("warn", None, logging.WARNING),
        ("nonsense", None, logging.INFO),
        (None, "yes", logging.DEBUG),
        (None, None, logging.INFO),
    ],
)
def test_resolve_log_level(monkeypatch: pytest.MonkeyPatch, log_level, debug, expected) -> None:
    for name, value in (("LOG_LEVEL", log_level), ("DEBUG", debug)):
        if value is None:
            monkeypatch.delenv(name, raising=False)
        else:
            monkeypatch.setenv(name, value)

    assert resolve_log_level() == expected


def test_log_context_prefixes_message(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("media-proxy.test")

    with caplog.at_level(logging.INFO, logger="media-proxy.test"):
        with_log_context(logger, reference="abc", stage="resolve").info("failed")

    assert caplog.records[0].getMessage() == "[reference=abc stage=resolve] failed"
    assert caplog.records[0].stage == "resolve"
