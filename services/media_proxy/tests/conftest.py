from __future__ import annotations

from typing import Any

import pytest

from services.media_proxy.errors import ExtractionFailed
from services.media_proxy.records import MetadataRecord


def make_record(original_url: str, **fields: Any) -> MetadataRecord:
    data = {
        "original_url": original_url,
        "url": f"https://cdn.example.com/{original_url.rsplit('/', 1)[-1]}.m4a",
        "thumbnails": [],
    }
    data.update(fields)
    return MetadataRecord(data)


class StubExtractor:
    """Returns canned records per reference and counts calls."""

    def __init__(self, results: dict[str, list[MetadataRecord]] | None = None):
        self.results = results or {}
        self.calls: list[str] = []

    async def extract(self, reference: str) -> list[MetadataRecord]:
        self.calls.append(reference)
        if reference not in self.results:
            raise ExtractionFailed(f"no canned result for {reference}")
        return self.results[reference]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
