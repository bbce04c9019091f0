"""TTL-bounded read cache for case-record service results.

One ``CacheStore`` instance is shared by every workflow of a signed-in
user. It is constructed empty, filled by read-through and cleared on
logout. Entries are keyed by resource identity; an entry is a hit only
while ``now - timestamp < ttl``.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Any

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 300.0


class _Miss(Enum):
    MISS = "MISS"


MISS = _Miss.MISS
"""Sentinel returned by ``CacheStore.get`` for absent or expired entries."""


class ResourceKind(StrEnum):
    ALL_CASES = "all_cases"
    CASE = "case"
    ALL_PROCEEDINGS = "all_proceedings"
    PROCEEDINGS_FOR_CASE = "proceedings_for_case"
    DASHBOARD = "dashboard"
    BRANCH_GRAPH = "branch_graph"


@dataclass(frozen=True)
class CacheKey:
    """Resource identity of a cached read."""

    kind: ResourceKind
    resource_id: str | None = None

    @classmethod
    def all_cases(cls) -> CacheKey:
        return cls(ResourceKind.ALL_CASES)

    @classmethod
    def case(cls, case_id: str) -> CacheKey:
        return cls(ResourceKind.CASE, case_id)

    @classmethod
    def all_proceedings(cls) -> CacheKey:
        return cls(ResourceKind.ALL_PROCEEDINGS)

    @classmethod
    def proceedings_for_case(cls, case_id: str) -> CacheKey:
        return cls(ResourceKind.PROCEEDINGS_FOR_CASE, case_id)

    @classmethod
    def dashboard(cls) -> CacheKey:
        return cls(ResourceKind.DASHBOARD)

    @classmethod
    def branch_graph(cls) -> CacheKey:
        return cls(ResourceKind.BRANCH_GRAPH)

    def __str__(self) -> str:
        return self.kind.value if self.resource_id is None else f"{self.kind.value}:{self.resource_id}"


@dataclass(frozen=True)
class CacheEntry:
    data: Any
    timestamp: float


class CacheStore:
    """In-process memoization of read results with a fixed TTL.

    ``clock`` returns seconds and defaults to ``time.monotonic``; tests
    inject a controllable one.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            msg = f"ttl_seconds must be positive, got {ttl_seconds}"
            raise ValueError(msg)
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, CacheKey) and self.get(key) is not MISS

    def get(self, key: CacheKey) -> Any | _Miss:
        """Cached data for ``key``, or ``MISS`` when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        if self._clock() - entry.timestamp >= self._ttl:
            return MISS
        return entry.data

    def set(self, key: CacheKey, data: Any) -> None:
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock())

    def invalidate(self, *keys: CacheKey) -> None:
        for key in keys:
            self._entries.pop(key, None)
        if keys:
            logger.debug("cache_invalidated", keys=[str(k) for k in keys])

    def invalidate_kind(self, *kinds: ResourceKind) -> None:
        stale = [key for key in self._entries if key.kind in kinds]
        self.invalidate(*stale)

    def invalidate_case(self, case_id: str) -> None:
        """Drop a case's detail, its proceedings, and the all-cases list."""
        self.invalidate(
            CacheKey.case(case_id),
            CacheKey.proceedings_for_case(case_id),
            CacheKey.all_cases(),
        )

    def invalidate_aggregates(self) -> None:
        """Drop the dashboard totals and the per-branch counts."""
        self.invalidate(CacheKey.dashboard(), CacheKey.branch_graph())

    def invalidate_all_cases(self) -> None:
        """Drop the all-cases list, every case detail, and every per-case proceedings list."""
        self.invalidate(CacheKey.all_cases())
        self.invalidate_kind(ResourceKind.CASE, ResourceKind.PROCEEDINGS_FOR_CASE)

    def invalidate_all(self) -> None:
        self._entries.clear()
        logger.debug("cache_cleared")

    def clear(self) -> None:
        """Logout teardown."""
        self.invalidate_all()
