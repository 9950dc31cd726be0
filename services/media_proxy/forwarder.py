"""Re-target an inbound request at the resolved URL and relay the origin's reply."""

from __future__ import annotations

import logging

import httpx
from fastapi import Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from services.media_proxy.config import SERVICE_NAME
from services.media_proxy.errors import InvalidTargetUrl, UpstreamError, UpstreamTimeout

log = logging.getLogger(f"{SERVICE_NAME}.forwarder")

# Framing of one hop; each side of the proxy frames its own message.
_CONNECTION_HEADERS = {b"connection", b"keep-alive", b"transfer-encoding"}
# Dropped from the inbound request: Host is derived from the target URL and
# the body is re-sent buffered.
_DROPPED_REQUEST_HEADERS = _CONNECTION_HEADERS | {b"host"}
_CHUNK_SIZE = 65536


def parse_target_url(target_url: str) -> httpx.URL:
    try:
        url = httpx.URL(target_url)
    except httpx.InvalidURL as e:
        raise InvalidTargetUrl(f"{target_url[:65]!r} is not a valid URL: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidTargetUrl(f"{target_url[:65]!r} is not an absolute http(s) URL")
    return url


def build_upstream_request(
    client: httpx.AsyncClient,
    method: str,
    headers: list[tuple[bytes, bytes]],
    body: bytes,
    target_url: str,
) -> httpx.Request:
    """Same method, headers and body, aimed at *target_url*.

    The request is built outside the client so none of the client's default
    headers are added; only Host (from the target) and, for a body, its
    Content-Length are filled in. The client's timeouts still apply.
    """
    url = parse_target_url(target_url)
    kept = [(name, value) for name, value in headers if name.lower() not in _DROPPED_REQUEST_HEADERS]
    return httpx.Request(
        method,
        url,
        headers=kept,
        content=body or None,
        extensions={"timeout": client.timeout.as_dict()},
    )


async def forward(request: Request, target_url: str, client: httpx.AsyncClient) -> StreamingResponse:
    body = await request.body()
    upstream_request = build_upstream_request(
        client, request.method, request.headers.raw, body, target_url
    )
    log.debug(f"request: {upstream_request.method} {upstream_request.headers!r}")

    try:
        upstream = await client.send(upstream_request, stream=True)
    except httpx.TimeoutException as e:
        raise UpstreamTimeout(f"origin timed out: {e!r}") from e
    except httpx.HTTPError as e:
        raise UpstreamError(f"origin request failed: {e!r}") from e
    log.debug(f"response: {upstream.status_code} {upstream.headers!r}")

    async def relay():
        try:
            async for chunk in upstream.aiter_raw(chunk_size=_CHUNK_SIZE):
                yield chunk
        except (httpx.HTTPError, httpx.StreamError) as e:
            log.warning(f"Upstream read error while relaying {upstream_request.url.host}: {e}")
        finally:
            await upstream.aclose()

    # Closes the upstream even if the body is never iterated.
    response = StreamingResponse(
        relay(), status_code=upstream.status_code, background=BackgroundTask(upstream.aclose)
    )
    response.raw_headers = [
        (name.lower(), value)
        for name, value in upstream.headers.raw
        if name.lower() not in _CONNECTION_HEADERS
    ]
    return response
