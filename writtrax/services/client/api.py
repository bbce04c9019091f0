"""Async client for the case-record REST service.

Every protected request carries the session token in the
``x-access-token`` header. Responses are checked in a fixed order:
unparsable body, 401/403, other non-2xx, then an embedded ``status``
field in an otherwise successful envelope. Any authentication failure
runs the registered auth-failure hooks (session teardown) before
``AuthenticationError`` propagates.

GETs are retried with exponential backoff on transport errors. Mutating
requests are sent exactly once.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from writtrax.core.exceptions import AuthenticationError, RequestFailedError
from writtrax.models.domain import (
    BranchCount,
    CaseRecord,
    DashboardMetrics,
    FilingMetrics,
    LoginResult,
    Proceeding,
    WritTypeCount,
)

if TYPE_CHECKING:
    from writtrax.core.config import Settings
    from writtrax.services.proceedings.normalizer import ProceedingSubmission

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)
AuthFailureHook = Callable[[], None]

TOKEN_HEADER = "x-access-token"
AUTH_STATUSES = frozenset({401, 403})


def _server_message(data: Any) -> str | None:
    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, str) and message:
            return message
    return None


def parse_model(model: type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        msg = f"Unexpected {model.__name__} payload from server"
        raise RequestFailedError(msg, details={"errors": exc.error_count()}) from exc


def parse_model_list(model: type[ModelT], data: Any) -> list[ModelT]:
    if not isinstance(data, list):
        msg = f"Expected a list of {model.__name__}, got {type(data).__name__}"
        raise RequestFailedError(msg)
    return [parse_model(model, item) for item in data]


class WritTraxClient:
    """Async HTTP client for the case-record service.

    Features:
    - Token header on every protected request
    - Auth-failure hooks run on 401/403 (HTTP or embedded status)
    - Exponential backoff retry of GETs via tenacity
    - Structured logging for all API interactions
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        *,
        on_auth_failure: AuthFailureHook | None = None,
    ) -> None:
        self._base_url = settings.api_base_url.rstrip("/")
        self._token = settings.api_token or None
        self._client = http_client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
        self._owns_client = http_client is None
        self._auth_failure_hooks: list[AuthFailureHook] = []
        if on_auth_failure is not None:
            self._auth_failure_hooks.append(on_auth_failure)

    async def close(self) -> None:
        """Close the underlying HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    # --- Session ---

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        self._token = token or None

    def add_auth_failure_hook(self, hook: AuthFailureHook) -> None:
        self._auth_failure_hooks.append(hook)

    def _teardown(self, reason: str) -> None:
        logger.warning("auth_session_torn_down", reason=reason)
        self._token = None
        for hook in self._auth_failure_hooks:
            hook()

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self._token:
            headers[TOKEN_HEADER] = self._token
        return headers

    # --- Transport ---

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        logger.debug("api_request", method=method, path=path)
        return await self._client.request(
            method,
            f"{self._base_url}{path}",
            headers=self._headers(),
            **kwargs,
        )

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _send_idempotent(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._send(method, path, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> Any:
        """Send one request and return the parsed, checked JSON body."""
        if authenticated and not self._token:
            logger.warning("api_request_without_token", path=path)
            self._teardown("missing_token")
            raise AuthenticationError("Authentication required. Please login again.")

        try:
            if method == "GET":
                response = await self._send_idempotent(method, path, **kwargs)
            else:
                response = await self._send(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.error("api_transport_error", method=method, path=path, error=str(exc))
            msg = f"Unable to reach the case-record service: {exc}"
            raise RequestFailedError(msg, details={"path": path}) from exc

        return self._check_response(response, path=path, authenticated=authenticated)

    def _check_response(self, response: httpx.Response, *, path: str, authenticated: bool) -> Any:
        status = response.status_code
        try:
            data = response.json()
        except ValueError as exc:
            logger.error("api_unparsable_response", path=path, status_code=status)
            if authenticated and status in AUTH_STATUSES:
                self._teardown(f"http_{status}")
            raise RequestFailedError(
                "Unable to parse server response",
                status_code=status,
                details={"path": path},
            ) from exc

        message = _server_message(data)

        if authenticated and status in AUTH_STATUSES:
            self._teardown(f"http_{status}")
            fallback = (
                "Your session has expired. Please login again."
                if status == 401
                else "Access forbidden. Please login again."
            )
            raise AuthenticationError(message or fallback, details={"status_code": status})

        if not response.is_success:
            logger.error("api_request_failed", path=path, status_code=status, message=message)
            raise RequestFailedError(
                message or f"Request failed with status {status}",
                status_code=status,
                server_message=message,
                details={"path": path},
            )

        if isinstance(data, dict):
            embedded = data.get("status")
            if isinstance(embedded, int) and not isinstance(embedded, bool) and embedded != 200:
                logger.error("api_status_error", path=path, status=embedded, message=message)
                if authenticated and embedded in AUTH_STATUSES:
                    self._teardown(f"status_{embedded}")
                    raise AuthenticationError(
                        message or f"Request failed with status {embedded}",
                        details={"status_code": embedded},
                    )
                raise RequestFailedError(
                    message or f"Request failed with status {embedded}",
                    status_code=embedded,
                    server_message=message,
                    details={"path": path},
                )

        return data

    # --- Auth ---

    async def login(self, email: str, password: str) -> LoginResult:
        """Exchange credentials for a session token and start using it."""
        data = await self.request(
            "POST",
            "/auth/login",
            authenticated=False,
            json={"email": email, "password": password},
        )
        if not isinstance(data, dict) or not data.get("token"):
            raise RequestFailedError("Login succeeded but no token was returned")
        result = parse_model(LoginResult, data)
        self.set_token(result.token)
        logger.info("logged_in", role=result.role, branch=result.branch)
        return result

    # --- Cases ---

    async def list_cases(self) -> list[CaseRecord]:
        return parse_model_list(CaseRecord, await self.request("GET", "/v1/firs"))

    async def get_case(self, case_id: str) -> CaseRecord:
        return parse_model(CaseRecord, await self.request("GET", f"/v1/firs/{case_id}"))

    async def search_cases(self, query: str) -> list[CaseRecord]:
        data = await self.request("GET", "/v1/firs/search", params={"q": query})
        return parse_model_list(CaseRecord, data)

    async def create_case(self, payload: dict[str, Any]) -> CaseRecord:
        data = await self.request("POST", "/v1/firs", json=payload)
        record = parse_model(CaseRecord, data)
        logger.info("case_created", case_id=record.id)
        return record

    async def update_case(self, case_id: str, payload: dict[str, Any]) -> CaseRecord:
        data = await self.request("PUT", f"/v1/firs/{case_id}", json=payload)
        record = parse_model(CaseRecord, data)
        logger.info("case_updated", case_id=case_id)
        return record

    async def get_dashboard(self) -> DashboardMetrics:
        return parse_model(DashboardMetrics, await self.request("GET", "/v1/firs/dash"))

    async def get_branch_graph(self) -> list[BranchCount]:
        return parse_model_list(BranchCount, await self.request("GET", "/v1/firs/graph"))

    async def get_writ_type_distribution(self) -> list[WritTypeCount]:
        data = await self.request("GET", "/v1/firs/writ-type-distribution")
        return parse_model_list(WritTypeCount, data)

    async def list_branches(self) -> list[str]:
        data = await self.request("GET", "/v1/branches")
        if not isinstance(data, list):
            raise RequestFailedError("Expected a list of branch names")
        return [str(name) for name in data]

    # --- Proceedings ---

    async def list_proceedings(self) -> list[Proceeding]:
        return parse_model_list(Proceeding, await self.request("GET", "/v1/proceedings"))

    async def list_proceedings_for_case(self, case_id: str) -> list[Proceeding]:
        data = await self.request("GET", f"/v1/proceedings/fir/{case_id}")
        return parse_model_list(Proceeding, data)

    async def get_proceeding(self, proceeding_id: str) -> Proceeding:
        return parse_model(Proceeding, await self.request("GET", f"/v1/proceedings/{proceeding_id}"))

    async def get_draft_proceeding(self, case_id: str) -> Proceeding | None:
        """The case's draft proceeding, or None when it has none."""
        data = await self.request("GET", f"/v1/proceedings/fir/{case_id}/draft")
        if not data:
            return None
        return parse_model(Proceeding, data)

    async def get_motion_metrics(self) -> FilingMetrics:
        return parse_model(FilingMetrics, await self.request("GET", "/v1/proceedings/motion-metrics"))

    async def get_affidavit_metrics(self) -> FilingMetrics:
        return parse_model(FilingMetrics, await self.request("GET", "/v1/proceedings/affidavit-metrics"))

    @staticmethod
    def _multipart(submission: ProceedingSubmission, *, include_deletions: bool) -> list[Any]:
        # Plain fields go as file-less parts so the body is multipart even
        # when no file is attached.
        fields = submission.form_fields(include_deletions=include_deletions)
        parts: list[Any] = [(name, (None, value)) for name, value in fields.items()]
        if submission.instructions is not None:
            parts.extend(submission.instructions.multipart_files())
        return parts

    async def create_proceeding(self, submission: ProceedingSubmission) -> Proceeding:
        files = self._multipart(submission, include_deletions=False)
        data = await self.request("POST", "/v1/proceedings", files=files)
        proceeding = parse_model(Proceeding, data)
        logger.info(
            "proceeding_created",
            proceeding_id=proceeding.id,
            case_id=submission.fir,
            draft=submission.draft,
        )
        return proceeding

    async def update_proceeding(self, proceeding_id: str, submission: ProceedingSubmission) -> Proceeding:
        files = self._multipart(submission, include_deletions=True)
        data = await self.request("PUT", f"/v1/proceedings/{proceeding_id}", files=files)
        proceeding = parse_model(Proceeding, data)
        logger.info(
            "proceeding_updated",
            proceeding_id=proceeding_id,
            case_id=submission.fir,
            draft=submission.draft,
        )
        return proceeding
