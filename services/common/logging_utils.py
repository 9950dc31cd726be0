"""Logging helpers shared by the proxy service modules."""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Any, Awaitable, Callable, TypeVar

R = TypeVar("R")

_TRUTHY_VALUES = {"1", "true", "yes", "on"}
_DEFAULT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_LEVELS_BY_NAME = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def _is_truthy(value: str | None) -> bool:
    return value is not None and value.strip().lower() in _TRUTHY_VALUES


def resolve_log_level(default_level: str = "INFO") -> int:
    """Pick the level from LOG_LEVEL, then DEBUG, then *default_level*."""
    configured = os.getenv("LOG_LEVEL", "").strip().lower()
    if configured:
        return _LEVELS_BY_NAME.get(configured, logging.INFO)
    if _is_truthy(os.getenv("DEBUG")):
        return logging.DEBUG
    return _LEVELS_BY_NAME.get(default_level.strip().lower(), logging.INFO)


def configure_service_logger(
    service_name: str,
    *,
    default_level: str = "INFO",
    fmt: str = _DEFAULT_FORMAT,
) -> logging.Logger:
    """Configure root handlers once and return the named service logger.

    Component loggers should be children of the service logger
    (``logging.getLogger(f"{service_name}.cache")``) so they share its level.
    """
    level = resolve_log_level(default_level)
    logging.basicConfig(level=level, format=fmt)
    logger = logging.getLogger(service_name)
    logger.setLevel(level)
    return logger


def with_log_context(logger: logging.Logger, **context: Any) -> logging.LoggerAdapter:
    """Prefix every message with ``key=value`` pairs from *context*."""
    return _ContextAdapter(logger, context)


class _ContextAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        prefix = " ".join(f"{key}={value}" for key, value in self.extra.items())
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"[{prefix}] {msg}", kwargs


def log_timing(
    logger: logging.Logger,
    operation: str,
    *,
    level: int = logging.INFO,
) -> Callable[[Callable[..., Awaitable[R]]], Callable[..., Awaitable[R]]]:
    """Decorator that logs how long an async operation took, or when it failed.

    Exceptions are re-raised unchanged.
    """

    def decorator(func: Callable[..., Awaitable[R]]) -> Callable[..., Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> R:
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                logger.warning(
                    "%s failed after %.2fms: %s",
                    operation,
                    (time.perf_counter() - start) * 1000.0,
                    exc,
                )
                raise
            logger.log(level, "%s completed in %.2fms", operation, (time.perf_counter() - start) * 1000.0)
            return result

        return wrapper

    return decorator
