"""
Time-boxed in-memory stores for pending requests, issued codes and refresh
records.

Controllers depend only on the ``Store`` interface (get / put / pop / delete)
so the in-memory map can be swapped for a shared external store when running
more than one process.
"""

import abc
import threading
import time
from typing import Generic, Protocol, TypeVar

from typing_extensions import override

from django_mcp_broker.types import Clock


class TimestampedRecord(Protocol):
    created_at: float


RecordT = TypeVar("RecordT", bound=TimestampedRecord)

DEFAULT_SHARD_COUNT = 16


class Store(abc.ABC, Generic[RecordT]):
    @abc.abstractmethod
    def get(self, key: str) -> RecordT | None:
        """Return the live record stored under ``key``, if any."""

    @abc.abstractmethod
    def put(self, key: str, record: RecordT) -> None:
        ...

    @abc.abstractmethod
    def pop(self, key: str) -> RecordT | None:
        """Atomically remove and return the live record stored under ``key``.

        Of several concurrent callers presenting the same key at most one
        receives the record.
        """

    @abc.abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key`` if present. Returns whether anything was removed."""

    @abc.abstractmethod
    def sweep(self, now: float | None = None) -> int:
        """Evict expired records and return how many were removed."""


class _Shard:
    __slots__ = ("lock", "entries")

    def __init__(self):
        self.lock = threading.Lock()
        self.entries: dict[str, object] = {}


class TTLStore(Store[RecordT]):
    """
    Sharded in-memory map whose records expire ``ttl`` seconds after their
    ``created_at``.

    Each shard has its own lock, so flows with different keys rarely contend
    and a sweep never holds more than one shard at a time. Expiry is also
    checked on read, which keeps stale records unusable between sweeps.
    """

    def __init__(
        self,
        name: str,
        ttl: float,
        clock: Clock = time.time,
        shard_count: int = DEFAULT_SHARD_COUNT,
    ):
        if shard_count < 1:
            raise ValueError("shard_count must be positive")
        self.name = name
        self.ttl = ttl
        self.clock = clock
        self._shards = [_Shard() for _ in range(shard_count)]

    def _shard(self, key: str) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def is_expired(self, record: RecordT, now: float | None = None) -> bool:
        if now is None:
            now = self.clock()
        return now - record.created_at >= self.ttl

    @override
    def get(self, key: str) -> RecordT | None:
        shard = self._shard(key)
        with shard.lock:
            record = shard.entries.get(key)
            if record is None:
                return None
            if self.is_expired(record):
                del shard.entries[key]
                return None
            return record

    @override
    def put(self, key: str, record: RecordT) -> None:
        shard = self._shard(key)
        with shard.lock:
            shard.entries[key] = record

    @override
    def pop(self, key: str) -> RecordT | None:
        shard = self._shard(key)
        with shard.lock:
            record = shard.entries.pop(key, None)
        if record is None or self.is_expired(record):
            return None
        return record

    @override
    def delete(self, key: str) -> bool:
        shard = self._shard(key)
        with shard.lock:
            return shard.entries.pop(key, None) is not None

    @override
    def sweep(self, now: float | None = None) -> int:
        if now is None:
            now = self.clock()
        removed = 0
        for shard in self._shards:
            with shard.lock:
                expired = [key for key, record in shard.entries.items() if self.is_expired(record, now)]
                for key in expired:
                    del shard.entries[key]
            removed += len(expired)
        return removed

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total

    def __contains__(self, key: str) -> bool:
        # Raw presence, ignoring expiry; used to observe what a sweep left behind.
        shard = self._shard(key)
        with shard.lock:
            return key in shard.entries
