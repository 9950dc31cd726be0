"""TTL cache of extractor records keyed by ``original_url``.

One extractor call for a playlist or album reference yields a record per
item; all of them are cached so requests for sibling items are hits.

All dict reads and writes happen without awaiting, so they are atomic with
respect to other tasks on the event loop. Concurrent misses on the same
reference are coalesced behind a per-reference lock: late arrivals re-check
the cache after the first extraction finishes instead of spawning another.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, NamedTuple, Optional

from services.media_proxy.config import DEFAULT_CACHE_TTL, SERVICE_NAME
from services.media_proxy.errors import NoMatchingRecord
from services.media_proxy.extractor import Extractor
from services.media_proxy.records import MetadataRecord

log = logging.getLogger(f"{SERVICE_NAME}.cache")


class CacheEntry(NamedTuple):
    record: MetadataRecord
    expires_at: float


class MetadataCache:
    def __init__(
        self,
        extractor: Extractor,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._extractor = extractor
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[MetadataRecord]:
        """Live record stored under *key*, dropping it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry.record

    def insert(self, record: MetadataRecord) -> str:
        """Store *record* under its own ``original_url``, replacing any entry there."""
        key = record.original_url
        self._entries[key] = CacheEntry(record, self._clock() + self._ttl)
        return key

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, v in self._entries.items() if now >= v.expires_at]
        for k in expired:
            self._entries.pop(k, None)
        if expired:
            log.debug(f"Purged {len(expired)} expired metadata entries")
        return len(expired)

    async def resolve(self, reference: str) -> MetadataRecord:
        record = self.get(reference)
        if record is not None:
            log.debug(f"cache hit for {reference}")
            return record

        lock = self._acquire_lock(reference)
        try:
            async with lock:
                record = self.get(reference)
                if record is not None:
                    log.debug(f"cache filled while waiting for {reference}")
                    return record
                return await self._populate(reference)
        finally:
            self._release_lock(reference)

    async def _populate(self, reference: str) -> MetadataRecord:
        log.info(f"updating cache for {reference}")
        records = await self._extractor.extract(reference)

        self.purge_expired()
        keys = [self.insert(record) for record in records]
        log.info(f"cached {len(keys)} record(s) from {reference}")

        record = self.get(reference)
        if record is None:
            raise NoMatchingRecord(reference, keys)
        return record

    def _acquire_lock(self, reference: str) -> asyncio.Lock:
        lock = self._locks.get(reference)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[reference] = lock
        self._lock_users[reference] = self._lock_users.get(reference, 0) + 1
        return lock

    def _release_lock(self, reference: str):
        remaining = self._lock_users[reference] - 1
        if remaining:
            self._lock_users[reference] = remaining
        else:
            del self._lock_users[reference]
            del self._locks[reference]
