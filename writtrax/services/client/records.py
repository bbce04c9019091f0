"""Cache-aware facade over the case-record client.

The only path workflows use to reach the service. Reads go through the
cache (``fresh=True`` bypasses it and refreshes the entry). Writes call
the client and then invalidate every entry they could have made stale
before returning, unconditionally.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
import structlog

from writtrax.core.exceptions import WritTraxError
from writtrax.services.cache.store import MISS, CacheKey, CacheStore
from writtrax.services.client.admin import AdminClient
from writtrax.services.client.api import WritTraxClient

if TYPE_CHECKING:
    from writtrax.core.config import Settings
    from writtrax.models.domain import (
        BranchCount,
        CaseRecord,
        DashboardMetrics,
        FilingMetrics,
        LoginResult,
        Proceeding,
        WritTypeCount,
    )
    from writtrax.services.proceedings.normalizer import ProceedingSubmission

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class CaseProgress:
    """Background probe result. None means the probe failed (unknown)."""

    case_id: str
    has_draft: bool | None
    is_completed: bool | None


class CaseRecords:
    """Read-through cache plus write invalidation over ``WritTraxClient``."""

    def __init__(self, client: WritTraxClient, cache: CacheStore) -> None:
        self._client = client
        self._cache = cache
        self._admin = AdminClient(client, cache)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> CaseRecords:
        """Build a client and an empty cache; the cache is cleared on auth failure."""
        cache = CacheStore(ttl_seconds=settings.cache_ttl_seconds)
        client = WritTraxClient(settings, http_client, on_auth_failure=cache.clear)
        return cls(client, cache)

    @property
    def client(self) -> WritTraxClient:
        return self._client

    @property
    def cache(self) -> CacheStore:
        return self._cache

    @property
    def admin(self) -> AdminClient:
        """Administration endpoints sharing this session and cache."""
        return self._admin

    async def close(self) -> None:
        await self._client.close()

    async def _read_through(
        self,
        key: CacheKey,
        fetch: Callable[[], Awaitable[T]],
        *,
        fresh: bool,
    ) -> T:
        if not fresh:
            cached = self._cache.get(key)
            if cached is not MISS:
                logger.debug("cache_hit", key=str(key))
                return cached  # type: ignore[no-any-return]
        data = await fetch()
        self._cache.set(key, data)
        return data

    # --- Auth ---

    async def login(self, email: str, password: str) -> LoginResult:
        self._cache.clear()
        return await self._client.login(email, password)

    def logout(self) -> None:
        self._client.set_token(None)
        self._cache.clear()
        logger.info("logged_out")

    # --- Cached reads ---

    async def list_cases(self, *, fresh: bool = False) -> list[CaseRecord]:
        return await self._read_through(CacheKey.all_cases(), self._client.list_cases, fresh=fresh)

    async def get_case(self, case_id: str, *, fresh: bool = False) -> CaseRecord:
        return await self._read_through(
            CacheKey.case(case_id),
            lambda: self._client.get_case(case_id),
            fresh=fresh,
        )

    async def list_proceedings(self, *, fresh: bool = False) -> list[Proceeding]:
        return await self._read_through(
            CacheKey.all_proceedings(),
            self._client.list_proceedings,
            fresh=fresh,
        )

    async def list_proceedings_for_case(self, case_id: str, *, fresh: bool = False) -> list[Proceeding]:
        return await self._read_through(
            CacheKey.proceedings_for_case(case_id),
            lambda: self._client.list_proceedings_for_case(case_id),
            fresh=fresh,
        )

    async def get_dashboard(self, *, fresh: bool = False) -> DashboardMetrics:
        return await self._read_through(CacheKey.dashboard(), self._client.get_dashboard, fresh=fresh)

    async def get_branch_graph(self, *, fresh: bool = False) -> list[BranchCount]:
        return await self._read_through(
            CacheKey.branch_graph(),
            self._client.get_branch_graph,
            fresh=fresh,
        )

    # --- Uncached reads ---

    async def search_cases(self, query: str) -> list[CaseRecord]:
        return await self._client.search_cases(query)

    async def get_proceeding(self, proceeding_id: str) -> Proceeding:
        return await self._client.get_proceeding(proceeding_id)

    async def get_draft_proceeding(self, case_id: str) -> Proceeding | None:
        return await self._client.get_draft_proceeding(case_id)

    async def list_branches(self) -> list[str]:
        return await self._client.list_branches()

    async def get_writ_type_distribution(self) -> list[WritTypeCount]:
        return await self._client.get_writ_type_distribution()

    async def get_motion_metrics(self) -> FilingMetrics:
        return await self._client.get_motion_metrics()

    async def get_affidavit_metrics(self) -> FilingMetrics:
        return await self._client.get_affidavit_metrics()

    # --- Writes ---

    async def create_case(self, payload: dict[str, Any]) -> CaseRecord:
        record = await self._client.create_case(payload)
        self._cache.invalidate(CacheKey.all_cases(), CacheKey.case(record.id))
        self._cache.invalidate_aggregates()
        return record

    async def update_case(self, case_id: str, payload: dict[str, Any]) -> CaseRecord:
        record = await self._client.update_case(case_id, payload)
        self._cache.invalidate_case(case_id)
        self._cache.invalidate_aggregates()
        return record

    async def create_proceeding(self, submission: ProceedingSubmission) -> Proceeding:
        proceeding = await self._client.create_proceeding(submission)
        self._invalidate_after_proceeding_write(submission.fir)
        return proceeding

    async def update_proceeding(self, proceeding_id: str, submission: ProceedingSubmission) -> Proceeding:
        proceeding = await self._client.update_proceeding(proceeding_id, submission)
        self._invalidate_after_proceeding_write(submission.fir)
        return proceeding

    def _invalidate_after_proceeding_write(self, case_id: str) -> None:
        # A decision on the proceeding can change the case's derived status.
        self._cache.invalidate(CacheKey.all_proceedings())
        self._cache.invalidate_case(case_id)
        self._cache.invalidate_aggregates()

    # --- Background probes ---

    async def has_draft(self, case_id: str) -> bool | None:
        try:
            return await self._client.get_draft_proceeding(case_id) is not None
        except WritTraxError as exc:
            logger.warning("draft_probe_failed", case_id=case_id, error=exc.message)
            return None

    async def is_completed(self, case_id: str) -> bool | None:
        """True once the case has any non-draft proceeding."""
        try:
            proceedings = await self.list_proceedings_for_case(case_id, fresh=True)
        except WritTraxError as exc:
            logger.warning("completion_probe_failed", case_id=case_id, error=exc.message)
            return None
        return any(not p.draft for p in proceedings)

    async def probe_progress(self, case_ids: list[str]) -> list[CaseProgress]:
        """Draft and completion probes for many cases, run concurrently."""

        async def probe(case_id: str) -> CaseProgress:
            has_draft, is_completed = await asyncio.gather(
                self.has_draft(case_id),
                self.is_completed(case_id),
            )
            return CaseProgress(case_id=case_id, has_draft=has_draft, is_completed=is_completed)

        return list(await asyncio.gather(*(probe(case_id) for case_id in case_ids)))
