"""Shared runtime helpers: env parsing and the outbound HTTP client."""

from __future__ import annotations

import os

import httpx

DEFAULT_UPSTREAM_CONNECT_TIMEOUT = 30.0
DEFAULT_UPSTREAM_READ_TIMEOUT = 300.0


def env_str(name: str, default: str) -> str:
    """Read a string env var, treating an empty value as unset."""
    return os.getenv(name) or default


def env_int(name: str, default: str) -> int:
    """Parse an integer env var using a string default value."""
    return int(os.getenv(name, default))


def env_float(name: str, default: str) -> float:
    """Parse a float env var using a string default value."""
    return float(os.getenv(name, default))


def upstream_timeout(
    connect: float = DEFAULT_UPSTREAM_CONNECT_TIMEOUT,
    read: float = DEFAULT_UPSTREAM_READ_TIMEOUT,
) -> httpx.Timeout:
    """Timeout for proxied origin requests: short connect, long read."""
    return httpx.Timeout(connect, read=read)


def build_upstream_client(
    connect_timeout: float = DEFAULT_UPSTREAM_CONNECT_TIMEOUT,
    read_timeout: float = DEFAULT_UPSTREAM_READ_TIMEOUT,
) -> httpx.AsyncClient:
    """Build the shared AsyncClient used to reach origins.

    Redirects are not followed: the origin's response, redirect or not, is
    what the caller gets.
    """
    client_kwargs = {
        "timeout": upstream_timeout(connect_timeout, read_timeout),
        "follow_redirects": False,
    }
    return httpx.AsyncClient(**client_kwargs)
