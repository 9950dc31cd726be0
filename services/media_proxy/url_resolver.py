"""Pick the downstream URL out of a metadata record."""

from __future__ import annotations

from typing import Optional

from services.media_proxy.errors import NoMatchingThumbnail
from services.media_proxy.records import MetadataRecord, RequestIntent, Thumbnail


def stream_url(record: MetadataRecord) -> str:
    return record.get_str("url")


def cover_url(record: MetadataRecord, extension: str) -> str:
    """Highest-preference thumbnail whose URL ends with *extension*.

    Equal preferences resolve to the candidate listed last.
    """
    best: Optional[Thumbnail] = None
    for thumbnail in record.thumbnails():
        if not thumbnail.url.endswith(extension):
            continue
        if best is None or thumbnail.preference >= best.preference:
            best = thumbnail
    if best is None:
        raise NoMatchingThumbnail(extension)
    return best.url


def target_url(record: MetadataRecord, intent: RequestIntent) -> str:
    if intent.wants_cover:
        return cover_url(record, intent.cover_extension)
    return stream_url(record)
