"""Integration tests for the case-record HTTP client.

GET    /v1/firs, /v1/firs/{id}, /v1/proceedings/fir/{id}/draft, /v1/branches
POST   /auth/login, /v1/proceedings (multipart)
PUT    /v1/proceedings/{id} (multipart, with filesToDelete)

The service is replaced by an httpx.MockTransport so the full request and
response-checking path runs without a network.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from unittest.mock import MagicMock

import httpx
import pytest

from tests.conftest import make_case_payload, make_proceeding_payload
from writtrax.core.config import Settings
from writtrax.core.exceptions import AuthenticationError, FormValidationError, RequestFailedError
from writtrax.models.admin import AuditLogQuery, MetricsFilter, UserRole
from writtrax.models.domain import AttachmentChannel
from writtrax.services.client.api import TOKEN_HEADER, WritTraxClient
from writtrax.services.cache.store import MISS, CacheKey, CacheStore
from writtrax.services.client.admin import AdminClient
from writtrax.services.client.records import CaseRecords
from writtrax.services.proceedings.attachments import PendingFile, SaveInstructions
from writtrax.services.proceedings.normalizer import ProceedingSubmission, build_submission, empty_form

pytestmark = pytest.mark.integration

Handler = Callable[[httpx.Request], httpx.Response]


class ServiceStub:
    """Records requests and answers them with a configurable handler."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handler: Handler = lambda request: httpx.Response(200, json={})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def stub() -> ServiceStub:
    return ServiceStub()


@pytest.fixture
def auth_hook() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(test_settings: Settings, stub: ServiceStub, auth_hook: MagicMock) -> WritTraxClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return WritTraxClient(test_settings, http_client, on_auth_failure=auth_hook)


def _json(status: int, body: object) -> Handler:
    return lambda request: httpx.Response(status, json=body)


class TestReads:
    async def test_token_header_and_base_url(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, [make_case_payload()])

        cases = await client.list_cases()

        assert [c.id for c in cases] == ["case-1"]
        [request] = stub.requests
        assert str(request.url) == "http://records.test/api/v1/firs"
        assert request.headers[TOKEN_HEADER] == "test-token"

    async def test_search_passes_query(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, [])
        await client.search_cases("Kumar")
        assert stub.requests[0].url.params["q"] == "Kumar"

    async def test_missing_draft_is_none(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = lambda request: httpx.Response(
            200,
            content=b"null",
            headers={"content-type": "application/json"},
        )
        assert await client.get_draft_proceeding("case-1") is None
        assert stub.requests[0].url.path == "/api/v1/proceedings/fir/case-1/draft"

    async def test_filing_metrics(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, {"filed": 4, "pending": 2, "overdue": 1})

        metrics = await client.get_motion_metrics()
        await client.get_affidavit_metrics()

        assert (metrics.filed, metrics.pending, metrics.overdue) == (4, 2, 1)
        assert [r.url.path for r in stub.requests] == [
            "/api/v1/proceedings/motion-metrics",
            "/api/v1/proceedings/affidavit-metrics",
        ]

    async def test_branches_are_strings(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, ["Central", "North"])
        assert await client.list_branches() == ["Central", "North"]

    async def test_unexpected_payload_rejected(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, {"not": "a list"})
        with pytest.raises(RequestFailedError):
            await client.list_cases()


class TestResponseChecks:
    async def test_http_401_tears_down_session(
        self,
        client: WritTraxClient,
        stub: ServiceStub,
        auth_hook: MagicMock,
    ) -> None:
        stub.handler = _json(401, {"message": "jwt expired"})

        with pytest.raises(AuthenticationError, match="jwt expired"):
            await client.get_case("case-1")

        auth_hook.assert_called_once()
        assert client.token is None

    async def test_embedded_auth_status(
        self,
        client: WritTraxClient,
        stub: ServiceStub,
        auth_hook: MagicMock,
    ) -> None:
        stub.handler = _json(200, {"status": 403, "message": "Forbidden"})

        with pytest.raises(AuthenticationError):
            await client.get_dashboard()

        auth_hook.assert_called_once()

    async def test_embedded_error_status(
        self,
        client: WritTraxClient,
        stub: ServiceStub,
        auth_hook: MagicMock,
    ) -> None:
        stub.handler = _json(200, {"status": 400, "message": "Invalid writ number"})

        with pytest.raises(RequestFailedError) as exc_info:
            await client.get_dashboard()

        assert exc_info.value.status_code == 400
        assert exc_info.value.server_message == "Invalid writ number"
        auth_hook.assert_not_called()

    async def test_http_error_carries_server_message(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = _json(500, {"message": "Database unavailable"})

        with pytest.raises(RequestFailedError) as exc_info:
            await client.list_proceedings()

        assert exc_info.value.status_code == 500
        assert exc_info.value.server_message == "Database unavailable"

    async def test_unparsable_body(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = lambda request: httpx.Response(200, text="<html>gateway</html>")

        with pytest.raises(RequestFailedError, match="Unable to parse server response"):
            await client.list_cases()

    async def test_no_token_fails_before_request(
        self,
        client: WritTraxClient,
        stub: ServiceStub,
        auth_hook: MagicMock,
    ) -> None:
        client.set_token(None)

        with pytest.raises(AuthenticationError):
            await client.list_cases()

        assert stub.requests == []
        auth_hook.assert_called_once()


class TestLogin:
    async def test_login_sets_token(self, client: WritTraxClient, stub: ServiceStub) -> None:
        client.set_token(None)
        stub.handler = _json(200, {"token": "fresh", "role": "admin", "branch": "Central"})

        result = await client.login("user@example.com", "secret")

        assert result.role == "admin"
        assert client.token == "fresh"
        assert TOKEN_HEADER not in stub.requests[0].headers
        assert json.loads(stub.requests[0].content) == {"email": "user@example.com", "password": "secret"}

    async def test_login_without_token(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, {"role": "admin"})
        with pytest.raises(RequestFailedError, match="no token"):
            await client.login("user@example.com", "secret")

    async def test_rejected_login_does_not_tear_down(
        self,
        client: WritTraxClient,
        stub: ServiceStub,
        auth_hook: MagicMock,
    ) -> None:
        stub.handler = _json(401, {"message": "Invalid credentials"})

        with pytest.raises(RequestFailedError) as exc_info:
            await client.login("user@example.com", "wrong")

        assert exc_info.value.server_message == "Invalid credentials"
        auth_hook.assert_not_called()


class TestProceedingWrites:
    def _submission(self, *, files_to_delete: list[str]) -> ProceedingSubmission:
        instructions = SaveInstructions(
            channel=AttachmentChannel.NOTICE_OF_MOTION,
            entry_files={0: PendingFile("a.pdf", "application/pdf", b"%PDF-1.4")},
            files_to_delete=files_to_delete,
        )
        return build_submission(
            empty_form("case-1", hearing_date="2024-06-10"),
            draft=True,
            instructions=instructions,
        )

    async def test_create_sends_multipart(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = _json(201, make_proceeding_payload(draft=True))

        proceeding = await client.create_proceeding(self._submission(files_to_delete=["old.pdf"]))

        assert proceeding.draft is True
        [request] = stub.requests
        assert request.method == "POST"
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.content.decode()
        assert 'name="fir"' in body
        assert 'name="noticeOfMotion"' in body
        assert "\r\n\r\ntrue\r\n" in body
        assert 'name="attachments_noticeOfMotion_0"; filename="a.pdf"' in body
        assert "filesToDelete" not in body

    async def test_update_sends_deletions(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, make_proceeding_payload())

        await client.update_proceeding("proc-1", self._submission(files_to_delete=["old.pdf"]))

        [request] = stub.requests
        assert request.method == "PUT"
        assert request.url.path == "/api/v1/proceedings/proc-1"
        body = request.content.decode()
        assert 'name="filesToDelete"' in body
        assert '["old.pdf"]' in body

    async def test_multipart_without_files(self, client: WritTraxClient, stub: ServiceStub) -> None:
        stub.handler = _json(201, make_proceeding_payload())

        await client.create_proceeding(build_submission(empty_form("case-1"), draft=True))

        assert stub.requests[0].headers["content-type"].startswith("multipart/form-data")

    async def test_transport_error_on_write_not_retried(self, client: WritTraxClient, stub: ServiceStub) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        stub.handler = refuse

        with pytest.raises(RequestFailedError, match="Unable to reach"):
            await client.create_proceeding(self._submission(files_to_delete=[]))

        assert len(stub.requests) == 1


class TestRecordsWiring:
    async def test_auth_failure_clears_cache(self, test_settings: Settings, stub: ServiceStub) -> None:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
        records = CaseRecords.from_settings(test_settings, http_client)
        stub.handler = _json(200, make_case_payload())
        await records.get_case("case-1")
        assert len(records.cache) == 1

        stub.handler = _json(401, {})
        with pytest.raises(AuthenticationError):
            await records.get_case("case-2")

        assert len(records.cache) == 0
        await http_client.aclose()


def _user(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "_id": "user-1",
        "email": "clerk@example.com",
        "role": "USER",
        "branch": "Central",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def admin(client: WritTraxClient) -> AdminClient:
    return AdminClient(client)


class TestAdminUsers:
    async def test_list_users(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, [_user(), _user(_id="user-2", role="ADMIN")])

        users = await admin.list_users()

        assert [u.role for u in users] == [UserRole.USER, UserRole.ADMIN]
        assert stub.requests[0].url.path == "/api/v1/admin/users"
        assert stub.requests[0].headers[TOKEN_HEADER] == "test-token"

    async def test_count_admins(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, {"count": 3})
        assert await admin.count_admins() == 3
        assert stub.requests[0].url.path == "/api/v1/admin/users-count/admins"

    async def test_create_user(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(201, _user(role="ADMIN"))

        user = await admin.create_user("clerk@example.com", "secret", role=UserRole.ADMIN, branch="Central")

        assert user.id == "user-1"
        assert json.loads(stub.requests[0].content) == {
            "email": "clerk@example.com",
            "password": "secret",
            "role": "ADMIN",
            "branch": "Central",
        }

    async def test_update_sends_only_changes(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, _user(branch="North"))

        await admin.update_user("user-1", branch="North")

        [request] = stub.requests
        assert request.method == "PUT"
        assert request.url.path == "/api/v1/admin/users/user-1"
        assert json.loads(request.content) == {"branch": "North"}

    async def test_update_without_changes_rejected(self, admin: AdminClient, stub: ServiceStub) -> None:
        with pytest.raises(FormValidationError):
            await admin.update_user("user-1")
        assert stub.requests == []

    async def test_delete_user(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, _user())
        await admin.delete_user("user-1")
        assert stub.requests[0].method == "DELETE"

    async def test_forbidden_tears_down_session(
        self,
        admin: AdminClient,
        client: WritTraxClient,
        stub: ServiceStub,
        auth_hook: MagicMock,
    ) -> None:
        stub.handler = _json(403, {"message": "Admins only"})

        with pytest.raises(AuthenticationError, match="Admins only"):
            await admin.list_users()

        auth_hook.assert_called_once()
        assert client.token is None


class TestAdminQueries:
    async def test_metrics_filter_skips_empty_values(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, {"filed": 1, "pending": 0, "overdue": 0})

        await admin.get_motion_metrics(MetricsFilter(start_date="2024-01-01", branch=""))

        request = stub.requests[0]
        assert request.url.path == "/api/v1/admin/motion-metrics"
        assert dict(request.url.params) == {"startDate": "2024-01-01"}

    async def test_dashboard_metrics(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, {"totalCases": 9, "closedCases": 2, "ongoingCases": 7, "statusCounts": []})

        metrics = await admin.get_dashboard_metrics(MetricsFilter(branch="North"))

        assert metrics.total_cases == 9
        assert stub.requests[0].url.params["branch"] == "North"

    async def test_system_metrics(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(
            200,
            {
                "totalUsers": 5,
                "totalFIRs": 40,
                "totalProceedings": 90,
                "usersByRole": [{"role": "ADMIN", "count": 1}],
                "firsByStatus": [{"status": "PENDING", "count": 30}],
                "firsByBranch": [{"branch": "Central", "count": 40}],
            },
        )

        metrics = await admin.get_system_metrics()

        assert metrics.total_firs == 40
        assert metrics.users_by_role[0].count == 1
        assert metrics.firs_by_branch[0].branch == "Central"

    async def test_audit_logs_not_branch_scoped(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(
            200,
            [
                {
                    "_id": "log-1",
                    "action": "UPDATE",
                    "userEmail": "clerk@example.com",
                    "resourceType": "FIR",
                    "timestamp": "2024-06-01T10:00:00.000Z",
                },
            ],
        )
        query = AuditLogQuery(action="UPDATE", branch="North", limit=50, skip=0)

        [log] = await admin.list_audit_logs(query)
        await admin.list_user_activity_logs(query)

        assert log.user_email == "clerk@example.com"
        assert dict(stub.requests[0].url.params) == {"action": "UPDATE", "limit": "50"}
        assert stub.requests[1].url.path == "/api/v1/admin/user-logs"
        assert stub.requests[1].url.params["branch"] == "North"

    async def test_update_config(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, {"key": "ttl", "value": 600, "updatedBy": "admin@example.com"})

        entry = await admin.update_config("ttl", 600)

        assert entry.value == 600
        assert json.loads(stub.requests[0].content) == {"key": "ttl", "value": 600}


class TestAdminBranches:
    async def test_branch_names_are_path_encoded(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, ["Civil Lines"])

        names = await admin.rename_branch("Civil/Old", "Civil Lines")

        assert names == ["Civil Lines"]
        assert stub.requests[0].url.raw_path == b"/api/v1/admin/branches/Civil%2FOld"
        assert json.loads(stub.requests[0].content) == {"name": "Civil Lines"}

    async def test_check_deletion(self, admin: AdminClient, stub: ServiceStub) -> None:
        stub.handler = _json(200, {"firCount": 2, "proceedingCount": 0})

        usage = await admin.check_branch_deletion("North")

        assert usage.in_use
        assert stub.requests[0].url.path == "/api/v1/admin/branches/North/check-deletion"

    async def test_delete_invalidates_branch_scoped_cache(
        self,
        client: WritTraxClient,
        stub: ServiceStub,
    ) -> None:
        cache = CacheStore()
        cache.set(CacheKey.branch_graph(), [])
        cache.set(CacheKey.case("case-1"), "stale")
        cache.set(CacheKey.all_proceedings(), ["kept"])
        stub.handler = _json(200, {"message": "Branch deleted"})

        message = await AdminClient(client, cache).delete_branch("North")

        assert message == "Branch deleted"
        assert cache.get(CacheKey.branch_graph()) is MISS
        assert cache.get(CacheKey.case("case-1")) is MISS
        assert cache.get(CacheKey.all_proceedings()) == ["kept"]
