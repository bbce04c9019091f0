"""Administration endpoints of the case-record service.

Shares the session, token header and response checks of
``WritTraxClient``: a 401/403 here tears the session down exactly as it
does for case and proceeding requests. Branch writes drop cached entries
that carry branch names or per-branch counts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import structlog

from writtrax.core.exceptions import FormValidationError, RequestFailedError
from writtrax.models.admin import (
    AdminMetrics,
    AuditLog,
    AuditLogQuery,
    BranchUsage,
    ConfigEntry,
    MetricsFilter,
    User,
    UserRole,
)
from writtrax.models.domain import (
    BranchCount,
    CaseRecord,
    DashboardMetrics,
    FilingMetrics,
    Proceeding,
    WritTypeCount,
)
from writtrax.services.client.api import parse_model, parse_model_list

if TYPE_CHECKING:
    from writtrax.services.cache.store import CacheStore
    from writtrax.services.client.api import WritTraxClient

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


def _filter_params(filters: MetricsFilter | None) -> dict[str, Any]:
    return filters.to_params() if filters is not None else {}


def _branch_path(name: str) -> str:
    return f"/v1/admin/branches/{quote(name, safe='')}"


def _branch_names(data: Any) -> list[str]:
    if not isinstance(data, list):
        raise RequestFailedError("Expected a list of branch names")
    return [str(name) for name in data]


class AdminClient:
    """User, audit, config and branch administration over a ``WritTraxClient``."""

    def __init__(self, client: WritTraxClient, cache: CacheStore | None = None) -> None:
        self._client = client
        self._cache = cache

    def _branches_changed(self) -> None:
        if self._cache is not None:
            self._cache.invalidate_all_cases()
            self._cache.invalidate_aggregates()

    # --- Users ---

    async def list_users(self) -> list[User]:
        return parse_model_list(User, await self._client.request("GET", "/v1/admin/users"))

    async def count_admins(self) -> int:
        data = await self._client.request("GET", "/v1/admin/users-count/admins")
        if not isinstance(data, dict) or not isinstance(data.get("count"), int):
            raise RequestFailedError("Expected an admin count")
        return int(data["count"])

    async def get_user(self, user_id: str) -> User:
        return parse_model(User, await self._client.request("GET", f"/v1/admin/users/{user_id}"))

    async def create_user(
        self,
        email: str,
        password: str,
        *,
        role: UserRole = UserRole.USER,
        branch: str = "",
    ) -> User:
        payload = {"email": email, "password": password, "role": role.value, "branch": branch}
        user = parse_model(User, await self._client.request("POST", "/v1/admin/users", json=payload))
        logger.info("user_created", user_id=user.id, role=user.role)
        return user

    async def update_user(
        self,
        user_id: str,
        *,
        email: str | None = None,
        role: UserRole | None = None,
        branch: str | None = None,
        password: str | None = None,
    ) -> User:
        """Send only the fields being changed."""
        changes = {"email": email, "role": role, "branch": branch, "password": password}
        payload = {key: value for key, value in changes.items() if value is not None}
        if not payload:
            msg = "No user fields to update"
            raise FormValidationError(msg)
        data = await self._client.request("PUT", f"/v1/admin/users/{user_id}", json=payload)
        user = parse_model(User, data)
        logger.info("user_updated", user_id=user_id, fields=sorted(payload.keys() - {"password"}))
        return user

    async def delete_user(self, user_id: str) -> User:
        user = parse_model(User, await self._client.request("DELETE", f"/v1/admin/users/{user_id}"))
        logger.info("user_deleted", user_id=user_id)
        return user

    # --- Data access ---

    async def list_all_cases(self, filters: MetricsFilter | None = None) -> list[CaseRecord]:
        data = await self._client.request("GET", "/v1/admin/firs", params=_filter_params(filters))
        return parse_model_list(CaseRecord, data)

    async def list_all_proceedings(self, filters: MetricsFilter | None = None) -> list[Proceeding]:
        data = await self._client.request("GET", "/v1/admin/proceedings", params=_filter_params(filters))
        return parse_model_list(Proceeding, data)

    # --- Metrics ---

    async def get_system_metrics(self) -> AdminMetrics:
        return parse_model(AdminMetrics, await self._client.request("GET", "/v1/admin/metrics"))

    async def get_dashboard_analytics(self) -> AdminMetrics:
        data = await self._client.request("GET", "/v1/admin/analytics/dashboard")
        return parse_model(AdminMetrics, data)

    async def get_dashboard_metrics(self, filters: MetricsFilter | None = None) -> DashboardMetrics:
        data = await self._client.request(
            "GET",
            "/v1/admin/dashboard-metrics",
            params=_filter_params(filters),
        )
        return parse_model(DashboardMetrics, data)

    async def get_branch_graph(self, filters: MetricsFilter | None = None) -> list[BranchCount]:
        data = await self._client.request("GET", "/v1/admin/city-graph", params=_filter_params(filters))
        return parse_model_list(BranchCount, data)

    async def get_writ_type_distribution(self, filters: MetricsFilter | None = None) -> list[WritTypeCount]:
        data = await self._client.request(
            "GET",
            "/v1/admin/writ-type-distribution",
            params=_filter_params(filters),
        )
        return parse_model_list(WritTypeCount, data)

    async def get_motion_metrics(self, filters: MetricsFilter | None = None) -> FilingMetrics:
        data = await self._client.request("GET", "/v1/admin/motion-metrics", params=_filter_params(filters))
        return parse_model(FilingMetrics, data)

    async def get_affidavit_metrics(self, filters: MetricsFilter | None = None) -> FilingMetrics:
        data = await self._client.request(
            "GET",
            "/v1/admin/affidavit-metrics",
            params=_filter_params(filters),
        )
        return parse_model(FilingMetrics, data)

    # --- Audit trail ---

    async def list_audit_logs(self, query: AuditLogQuery | None = None) -> list[AuditLog]:
        params = query.to_params() if query is not None else {}
        # The audit trail is not branch-scoped.
        params.pop("branch", None)
        data = await self._client.request("GET", "/v1/admin/audit-logs", params=params)
        return parse_model_list(AuditLog, data)

    async def list_user_activity_logs(self, query: AuditLogQuery | None = None) -> list[AuditLog]:
        params = query.to_params() if query is not None else {}
        data = await self._client.request("GET", "/v1/admin/user-logs", params=params)
        return parse_model_list(AuditLog, data)

    # --- System config ---

    async def list_config(self) -> list[ConfigEntry]:
        return parse_model_list(ConfigEntry, await self._client.request("GET", "/v1/admin/config"))

    async def update_config(self, key: str, value: Any, description: str | None = None) -> ConfigEntry:
        payload: dict[str, Any] = {"key": key, "value": value}
        if description is not None:
            payload["description"] = description
        entry = parse_model(ConfigEntry, await self._client.request("PUT", "/v1/admin/config", json=payload))
        logger.info("config_updated", key=key)
        return entry

    # --- Branches ---

    async def list_branches(self) -> list[str]:
        return _branch_names(await self._client.request("GET", "/v1/admin/branches"))

    async def create_branch(self, name: str) -> list[str]:
        """Add a branch; returns the updated branch list."""
        data = await self._client.request("POST", "/v1/admin/branches", json={"name": name})
        logger.info("branch_created", branch=name)
        return _branch_names(data)

    async def rename_branch(self, old_name: str, new_name: str) -> list[str]:
        data = await self._client.request("PUT", _branch_path(old_name), json={"name": new_name})
        self._branches_changed()
        logger.info("branch_renamed", branch=old_name, new_name=new_name)
        return _branch_names(data)

    async def check_branch_deletion(self, name: str) -> BranchUsage:
        data = await self._client.request("GET", f"{_branch_path(name)}/check-deletion")
        return parse_model(BranchUsage, data)

    async def delete_branch(self, name: str) -> str | None:
        """Delete a branch; returns the service's confirmation message."""
        data = await self._client.request("DELETE", _branch_path(name))
        self._branches_changed()
        logger.info("branch_deleted", branch=name)
        return data.get("message") if isinstance(data, dict) else None
