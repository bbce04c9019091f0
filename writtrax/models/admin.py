"""Administration models: users, audit trail, system config, branch usage.

Query models turn their set fields into request params; empty values are
left off the query string.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import Field

from writtrax.models.domain import BranchCount, StatusCount, WireModel


class UserRole(StrEnum):
    USER = "USER"
    ADMIN = "ADMIN"


class User(WireModel):
    id: str = Field(alias="_id")
    email: str
    role: UserRole = UserRole.USER
    branch: str = ""
    created_at: str | None = None
    updated_at: str | None = None


class RoleCount(WireModel):
    role: str
    count: int = 0


class AdminMetrics(WireModel):
    """System-wide totals shown on the admin overview."""

    total_users: int = 0
    total_firs: int = Field(default=0, alias="totalFIRs")
    total_proceedings: int = 0
    users_by_role: list[RoleCount] = Field(default_factory=list)
    firs_by_status: list[StatusCount] = Field(default_factory=list)
    firs_by_branch: list[BranchCount] = Field(default_factory=list)


class AuditLog(WireModel):
    id: str = Field(alias="_id")
    action: str
    user_email: str
    user_id: str | None = None
    resource_type: str
    resource_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: str
    ip_address: str | None = None


class ConfigEntry(WireModel):
    key: str
    value: Any = None
    description: str | None = None
    updated_by: str | None = None
    updated_at: str | None = None


class BranchUsage(WireModel):
    """Records that still reference a branch about to be deleted."""

    fir_count: int = 0
    proceeding_count: int = 0

    @property
    def in_use(self) -> bool:
        return self.fir_count > 0 or self.proceeding_count > 0


# ---------------------------------------------------------------------------
# Query filters
# ---------------------------------------------------------------------------


class _Query(WireModel):
    def to_params(self) -> dict[str, Any]:
        return {key: value for key, value in self.to_wire().items() if value}


class MetricsFilter(_Query):
    """Date range and branch narrowing for admin listings and metrics."""

    start_date: str | None = None
    end_date: str | None = None
    branch: str | None = None


class AuditLogQuery(_Query):
    user_email: str | None = None
    branch: str | None = None
    action: str | None = None
    resource_type: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    limit: int | None = Field(default=None, ge=0)
    skip: int | None = Field(default=None, ge=0)
