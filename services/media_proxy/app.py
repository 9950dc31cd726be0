"""
Media Proxy — FastAPI sidecar that streams media by reference.

``GET /<reference>/`` resolves the reference with yt-dlp and proxies the
best audio stream; ``GET /<reference>/cover.<ext>`` proxies the best cover
image with that extension. The origin's response is relayed as-is.

Extractor output is cached in memory per ``original_url`` for
``MEDIA_PROXY_CACHE_TTL`` seconds, so one playlist or album extraction
serves every track in it.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI, Request, Response

from services.common.logging_utils import configure_service_logger, with_log_context
from services.common.sidecar_runtime_utils import build_upstream_client
from services.media_proxy import input_parser, url_resolver
from services.media_proxy.config import SERVICE_NAME, ProxySettings
from services.media_proxy.errors import MediaProxyError
from services.media_proxy.extractor import Extractor, YtDlpExtractor
from services.media_proxy.forwarder import forward
from services.media_proxy.metadata_cache import MetadataCache

# ── Logging ─────────────────────────────────────────────────────────
log = configure_service_logger(SERVICE_NAME)

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def build_app(
    settings: Optional[ProxySettings] = None,
    extractor: Optional[Extractor] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Create the proxy app.

    The cache and outbound client live for the app's lifetime and are shared
    by every request. *extractor* and *client* default to the yt-dlp
    subprocess and a fresh AsyncClient built from *settings*.
    """
    settings = settings or ProxySettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────
        if extractor is None:
            active_extractor = YtDlpExtractor(
                binary=settings.extractor_binary_path,
                timeout=settings.extractor_timeout_seconds,
            )
        else:
            active_extractor = extractor
        app.state.cache = MetadataCache(active_extractor, ttl=settings.cache_ttl_seconds)
        if client is None:
            app.state.client = build_upstream_client(
                connect_timeout=settings.upstream_connect_timeout,
                read_timeout=settings.upstream_read_timeout,
            )
        else:
            app.state.client = client
        log.info(
            f"Media proxy starting: cache_ttl={settings.cache_ttl_seconds}s, "
            f"extractor={settings.extractor_binary_path}, "
            f"extractor_timeout={settings.extractor_timeout_seconds}s"
        )
        yield
        # ── Shutdown ─────────────────────────────────────────────────
        app.state.cache.purge_expired()
        if client is None:
            await app.state.client.aclose()
        log.info("Media proxy shutting down")

    app = FastAPI(title="Media Proxy", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    @app.exception_handler(MediaProxyError)
    async def media_proxy_error_handler(request: Request, exc: MediaProxyError) -> Response:
        return Response(status_code=exc.status_code)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "cached_records": len(app.state.cache),
            "cache_ttl_seconds": app.state.cache.ttl,
        }

    @app.api_route("/{path:path}", methods=PROXY_METHODS)
    async def proxy(request: Request):
        path_and_query = input_parser.path_and_query_from_scope(request.scope)
        stage_log = with_log_context(log, stage="parse")
        try:
            intent = input_parser.parse(path_and_query)
        except MediaProxyError as e:
            stage_log.warning(f"Rejected {path_and_query!r}: {e}")
            raise

        log.info(f"received input: {intent.reference}")
        stage = "resolve"
        try:
            record = await request.app.state.cache.resolve(intent.reference)
            stage = "select"
            target = url_resolver.target_url(record, intent)
            log.debug(f"target_url: {target[:65]}")
            stage = "forward"
            return await forward(request, target, request.app.state.client)
        except MediaProxyError as e:
            with_log_context(log, reference=intent.reference, stage=stage).error(
                f"Request error: {e}"
            )
            raise
        except Exception:
            with_log_context(log, reference=intent.reference, stage=stage).exception(
                "Unexpected request error"
            )
            return Response(status_code=500)

    return app


app = build_app()


def main():
    import uvicorn

    settings: ProxySettings = app.state.settings
    uvicorn.run(app, host=settings.listen_address, port=settings.listen_port)


if __name__ == "__main__":
    main()
