"""Metadata records produced by the extractor, and the request intent."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterator, Mapping

from pydantic import BaseModel, ConfigDict

from services.media_proxy.errors import FieldMissing


class RequestIntent(BaseModel):
    """What one inbound request asks for: a stream, or a cover image."""

    model_config = ConfigDict(frozen=True)

    reference: str
    wants_cover: bool = False
    cover_extension: str = ""


class Thumbnail(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    preference: int


class MetadataRecord(Mapping[str, Any]):
    """Read-only view over one extractor JSON document.

    Field access goes through ``get_str``/``get_list``, which raise
    ``FieldMissing`` instead of falling back to defaults.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any]):
        self._data = MappingProxyType(dict(data))

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MetadataRecord(original_url={self._data.get('original_url')!r})"

    def get_str(self, field: str) -> str:
        if field not in self._data:
            raise FieldMissing(field)
        value = self._data[field]
        if not isinstance(value, str):
            raise FieldMissing(field, "not a string")
        return value

    def get_list(self, field: str) -> list:
        if field not in self._data:
            raise FieldMissing(field)
        value = self._data[field]
        if not isinstance(value, list):
            raise FieldMissing(field, "not an array")
        return value

    @property
    def original_url(self) -> str:
        return self.get_str("original_url")

    def thumbnails(self) -> list[Thumbnail]:
        """Usable thumbnail candidates, in document order."""
        candidates = []
        for entry in self.get_list("thumbnails"):
            if not isinstance(entry, dict):
                continue
            url = entry.get("url")
            preference = entry.get("preference")
            # bool is an int subclass; JSON true/false is not a preference
            if not isinstance(url, str) or isinstance(preference, bool) or not isinstance(preference, int):
                continue
            candidates.append(Thumbnail(url=url, preference=preference))
        return candidates
