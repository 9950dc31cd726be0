"""Turn an inbound ``path?query`` into a RequestIntent."""

from __future__ import annotations

from services.media_proxy.errors import MalformedRequest
from services.media_proxy.records import RequestIntent

COVER_PREFIX = "cover."


def parse(path_and_query: str) -> RequestIntent:
    """Split off the trailing segment and interpret it.

    ``/<reference>/`` asks for the stream and ``/<reference>/cover.<ext>``
    for the cover image. Everything before the last ``/`` (minus leading
    slashes) is the reference, so references may themselves contain
    slashes and query strings.
    """
    candidate, sep, suffix = path_and_query.rpartition("/")
    if not sep:
        candidate, suffix = path_and_query, ""

    wants_cover = suffix.startswith(COVER_PREFIX)
    extension = ""
    if wants_cover:
        extension = suffix.split(".", 1)[1]
        if not extension:
            raise MalformedRequest("cover asked has no extension")
    elif suffix:
        raise MalformedRequest("no '/' or '/cover.*' after the URL")

    reference = candidate.lstrip("/")
    if not reference:
        raise MalformedRequest("empty reference")

    return RequestIntent(reference=reference, wants_cover=wants_cover, cover_extension=extension)


def path_and_query_from_scope(scope: dict) -> str:
    """Rebuild the undecoded request target from an ASGI scope."""
    raw_path = scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else scope.get("path", "")
    query = scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path
