"""Case filing workflow.

Drives a case from Step 1 (filing particulars) through Step 2 (first
proceeding and decision) to a submitted record, plus draft save/resume,
resuming an incomplete case, and editing the particulars of an already
completed case.

States::

    NEW -> STEP1 -> STEP2_DRAFT -> STEP2_FINAL_CONFIRM -> SUBMITTED
    RESUME_DRAFT / RESUME_INCOMPLETE -> STEP2_DRAFT
    EDIT_COMPLETED -> STEP1 -> STEP1_FINAL_CONFIRM -> SUBMITTED

Validation failures never change state or reach the network. A failed
request leaves the workflow in the state it held before the request.
An authentication failure discards the session.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from enum import StrEnum
from typing import TYPE_CHECKING, Any, NoReturn

import structlog

from writtrax.core.exceptions import (
    AuthenticationError,
    FormValidationError,
    NotFoundError,
    WorkflowStateError,
    WritTraxError,
    WritTypeLockedError,
    user_message,
)
from writtrax.models.domain import (
    InvestigatingOfficer,
    Proceeding,
    ProceedingType,
    Respondent,
    WritType,
)
from writtrax.models.forms import CaseForm, evolve
from writtrax.services.proceedings.editor import ProceedingEditor
from writtrax.services.proceedings.validators import (
    WRIT_TYPE_LOCKED_MESSAGE,
    validate_case_form,
    validate_final_proceeding,
)
from writtrax.services.workflow.session import SessionGuard
from writtrax.utils.dates import to_date_input

if TYPE_CHECKING:
    from writtrax.models.domain import CaseRecord
    from writtrax.models.forms import ProceedingForm
    from writtrax.services.client.records import CaseRecords
    from writtrax.services.proceedings.attachments import AttachmentLedger, PendingFile

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

NOT_COMPLETED_MESSAGE = "This writ has not been completed yet. Please complete it first before editing."
ALREADY_COMPLETED_MESSAGE = "This writ has already been completed."
DRAFT_NOT_FOUND_MESSAGE = "Draft not found"
ARGUMENT_NOT_ALLOWED_MESSAGE = "ARGUMENT proceedings are only available for QUASHING writs."


class FilingState(StrEnum):
    NEW = "NEW"
    STEP1 = "STEP1"
    STEP1_FINAL_CONFIRM = "STEP1_FINAL_CONFIRM"
    STEP2_DRAFT = "STEP2_DRAFT"
    STEP2_FINAL_CONFIRM = "STEP2_FINAL_CONFIRM"
    SUBMITTED = "SUBMITTED"
    RESUME_DRAFT = "RESUME_DRAFT"
    RESUME_INCOMPLETE = "RESUME_INCOMPLETE"
    EDIT_COMPLETED = "EDIT_COMPLETED"


def has_filed_argument(proceedings: list[Proceeding]) -> bool:
    """True if any non-draft proceeding of the case is an ARGUMENT."""
    return any(not p.draft and p.type == ProceedingType.ARGUMENT for p in proceedings)


class CaseFilingWorkflow:
    """State machine for filing a case and its first proceeding."""

    def __init__(
        self,
        records: CaseRecords,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._records = records
        self._today = today
        self._guard = SessionGuard("case_filing")
        self._reset(FilingState.NEW)

    def _reset(self, state: FilingState) -> None:
        self._state = state
        self._case: CaseRecord | None = None
        self._case_id: str | None = None
        self._form: CaseForm | None = None
        self._editor: ProceedingEditor | None = None
        self._edit_mode = False
        self._resuming_incomplete = False
        self._has_argument_proceeding = False
        self._form_open = False
        self._error: str | None = None

    # --- Session properties ---

    @property
    def state(self) -> FilingState:
        return self._state

    @property
    def case_id(self) -> str | None:
        return self._case_id

    @property
    def edit_mode(self) -> bool:
        return self._edit_mode

    @property
    def resuming_incomplete(self) -> bool:
        return self._resuming_incomplete

    @property
    def has_argument_proceeding(self) -> bool:
        return self._has_argument_proceeding

    @property
    def form(self) -> CaseForm | None:
        return self._form

    @property
    def proceeding(self) -> ProceedingForm | None:
        return self._editor.form if self._editor else None

    @property
    def ledger(self) -> AttachmentLedger | None:
        return self._editor.ledger if self._editor else None

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def in_flight(self) -> bool:
        return self._guard.in_flight

    @property
    def form_open(self) -> bool:
        return self._form_open

    @property
    def session_id(self) -> str:
        return self._guard.session_id

    # --- Internals ---

    def _require(self, *states: FilingState) -> None:
        if self._state not in states:
            allowed = ", ".join(s.value for s in states)
            msg = f"Operation not allowed in state {self._state.value} (expected {allowed})"
            raise WorkflowStateError(msg, details={"state": self._state.value})

    def _require_editor(self) -> ProceedingEditor:
        self._require(FilingState.STEP2_DRAFT)
        if self._editor is None:
            msg = "No proceeding is being edited"
            raise WorkflowStateError(msg)
        return self._editor

    def _require_form(self) -> CaseForm:
        self._require(FilingState.STEP1)
        if self._form is None:
            msg = "No case form is open"
            raise WorkflowStateError(msg)
        return self._form

    def _require_closed(self) -> FilingState:
        """Opening a case is only allowed while no form is open."""
        if self._form_open:
            msg = "Close the open filing form first"
            raise WorkflowStateError(msg, details={"state": self._state.value})
        return self._state

    def _writ_type(self) -> WritType | None:
        if self._form is not None:
            return self._form.writ_type
        return self._case.writ_type if self._case else None

    def _reject(self, exc: FormValidationError) -> NoReturn:
        self._error = exc.message
        raise exc

    def _request_failed(self, exc: WritTraxError, ticket: int, rollback: FilingState) -> None:
        """Apply a failed request to the session, if it is still current."""
        self._guard.ensure_current(ticket)
        if isinstance(exc, AuthenticationError):
            logger.warning("filing_session_discarded", reason="authentication")
            self._guard.teardown()
            self._reset(FilingState.NEW)
            self._error = exc.message
            return
        self._state = rollback
        self._error = user_message(exc)
        logger.warning("filing_request_failed", state=rollback, error=self._error)

    def _start_step2(self, hearing_date: str) -> None:
        if self._editor is None and self._case_id is not None:
            self._editor = ProceedingEditor.new(self._case_id, hearing_date=hearing_date)
        self._state = FilingState.STEP2_DRAFT
        self._form_open = True

    def _finish(self) -> None:
        logger.info("filing_submitted", case_id=self._case_id, edit_mode=self._edit_mode)
        self._guard.teardown()
        self._reset(FilingState.SUBMITTED)

    def available_types(self) -> list[ProceedingType]:
        """Proceeding types the user may pick for the current case."""
        return [
            t
            for t in ProceedingType
            if t != ProceedingType.ARGUMENT or self._writ_type() == WritType.QUASHING
        ]

    # --- Opening ---

    def open_new(self) -> None:
        """Open an empty filing form: one blank officer and one blank respondent."""
        self._require_closed()
        self._guard.teardown()
        self._reset(FilingState.STEP1)
        self._form = CaseForm(writ_year=self._today().year)
        self._form_open = True
        logger.info("filing_opened")

    async def resume_draft(self, case_id: str) -> None:
        """Reopen a case's draft proceeding in Step 2."""
        previous = self._require_closed()
        with self._guard.operation("resume_draft") as ticket:
            self._state = FilingState.RESUME_DRAFT
            try:
                case = await self._records.get_case(case_id, fresh=True)
                draft = await self._records.get_draft_proceeding(case_id)
            except WritTraxError as exc:
                self._request_failed(exc, ticket, previous)
                raise
            self._guard.ensure_current(ticket)
            if draft is None:
                self._state = previous
                self._error = DRAFT_NOT_FOUND_MESSAGE
                raise NotFoundError(DRAFT_NOT_FOUND_MESSAGE, details={"case_id": case_id})
            self._load_case(case, draft=draft)
            logger.info("draft_resumed", case_id=case_id, proceeding_id=draft.id)

    async def resume_incomplete(self, case_id: str) -> None:
        """Reopen a case that has no completed proceeding, landing in Step 2."""
        previous = self._require_closed()
        with self._guard.operation("resume_incomplete") as ticket:
            self._state = FilingState.RESUME_INCOMPLETE
            try:
                case = await self._records.get_case(case_id, fresh=True)
                proceedings = await self._records.list_proceedings_for_case(case_id, fresh=True)
                draft = None
                if not any(not p.draft for p in proceedings):
                    draft = await self._records.get_draft_proceeding(case_id)
            except WritTraxError as exc:
                self._request_failed(exc, ticket, previous)
                raise
            self._guard.ensure_current(ticket)
            if any(not p.draft for p in proceedings):
                self._state = previous
                self._error = ALREADY_COMPLETED_MESSAGE
                raise WorkflowStateError(ALREADY_COMPLETED_MESSAGE, details={"case_id": case_id})
            self._load_case(case, draft=draft)
            self._resuming_incomplete = True
            logger.info("incomplete_resumed", case_id=case_id, has_draft=draft is not None)

    def _load_case(self, case: CaseRecord, *, draft: Proceeding | None) -> None:
        self._reset(self._state)
        self._case = case
        self._case_id = case.id
        self._form = CaseForm.from_case(case)
        filing_date = to_date_input(case.date_of_fir)
        if draft is not None:
            self._editor = ProceedingEditor.from_proceeding(draft)
            if not self._editor.form.hearing_details.date_of_hearing:
                self._editor.update_hearing(date_of_hearing=filing_date)
        self._start_step2(filing_date)

    async def open_edit_completed(self, case_id: str) -> None:
        """Reopen Step 1 of a completed case for editing its particulars."""
        previous = self._require_closed()
        with self._guard.operation("open_edit_completed") as ticket:
            self._state = FilingState.EDIT_COMPLETED
            try:
                proceedings = await self._records.list_proceedings_for_case(case_id, fresh=True)
                case = await self._records.get_case(case_id, fresh=True)
            except WritTraxError as exc:
                self._request_failed(exc, ticket, previous)
                raise
            self._guard.ensure_current(ticket)
            if not any(not p.draft for p in proceedings):
                self._state = previous
                self._error = NOT_COMPLETED_MESSAGE
                raise WorkflowStateError(NOT_COMPLETED_MESSAGE, details={"case_id": case_id})
            self._reset(FilingState.STEP1)
            self._case = case
            self._case_id = case.id
            self._form = CaseForm.from_case(case)
            self._edit_mode = True
            self._has_argument_proceeding = has_filed_argument(proceedings)
            self._form_open = True
            logger.info(
                "edit_completed_opened",
                case_id=case_id,
                has_argument_proceeding=self._has_argument_proceeding,
            )

    def cancel(self) -> None:
        """Close the form and discard the session. In-flight responses are dropped."""
        logger.info("filing_cancelled", state=self._state, case_id=self._case_id)
        self._guard.teardown()
        self._reset(FilingState.NEW)

    # --- Step 1 editing ---

    def update_case_form(self, **fields: Any) -> None:
        form = self._require_form()
        new_type = fields.get("writ_type")
        if (
            new_type is not None
            and self._edit_mode
            and self._has_argument_proceeding
            and new_type != WritType.QUASHING
        ):
            self._reject(WritTypeLockedError(WRIT_TYPE_LOCKED_MESSAGE, field="writ_type"))
        try:
            self._form = evolve(form, **fields)
        except FormValidationError as exc:
            self._reject(exc)
        self._error = None
        if (
            self._editor is not None
            and self._editor.type == ProceedingType.ARGUMENT
            and self._form.writ_type != WritType.QUASHING
        ):
            self._editor.select_type(ProceedingType.NOTICE_OF_MOTION)
            logger.info("argument_type_reset", writ_type=self._form.writ_type)

    def _replace_rows(self, field: str, rows: list[Any]) -> None:
        self._form = evolve(self._require_form(), **{field: rows})

    def _update_row(self, field: str, index: int, **fields: Any) -> None:
        rows = list(getattr(self._require_form(), field))
        if not 0 <= index < len(rows):
            msg = f"No row at index {index}"
            self._reject(FormValidationError(msg, field=field))
        try:
            rows[index] = evolve(rows[index], **fields)
        except FormValidationError as exc:
            self._reject(exc)
        self._error = None
        self._replace_rows(field, rows)

    def add_respondent(self) -> None:
        self._replace_rows("respondents", [*self._require_form().respondents, Respondent()])

    def remove_respondent(self, index: int) -> None:
        rows = list(self._require_form().respondents)
        if len(rows) > 1 and 0 <= index < len(rows):
            del rows[index]
            self._replace_rows("respondents", rows)

    def update_respondent(self, index: int, **fields: Any) -> None:
        self._update_row("respondents", index, **fields)

    def add_officer(self) -> None:
        self._replace_rows(
            "investigating_officers",
            [*self._require_form().investigating_officers, InvestigatingOfficer()],
        )

    def remove_officer(self, index: int) -> None:
        rows = list(self._require_form().investigating_officers)
        if len(rows) > 1 and 0 <= index < len(rows):
            del rows[index]
            self._replace_rows("investigating_officers", rows)

    def update_officer(self, index: int, **fields: Any) -> None:
        self._update_row("investigating_officers", index, **fields)

    # --- Step 1 submission ---

    async def submit_step1(self) -> None:
        """Validate Step 1, then persist and advance (or ask for confirmation in edit mode)."""
        form = self._require_form()
        try:
            cleaned = validate_case_form(
                form,
                edit_mode=self._edit_mode,
                has_argument_proceeding=self._has_argument_proceeding,
            )
        except FormValidationError as exc:
            self._reject(exc)
        self._form = cleaned
        self._error = None

        if self._edit_mode:
            self._state = FilingState.STEP1_FINAL_CONFIRM
            return

        with self._guard.operation("submit_step1") as ticket:
            try:
                if self._case_id is None:
                    record = await self._records.create_case(cleaned.to_payload())
                else:
                    record = await self._records.update_case(self._case_id, cleaned.to_payload())
            except WritTraxError as exc:
                self._request_failed(exc, ticket, FilingState.STEP1)
                raise
            self._guard.ensure_current(ticket)
            self._case = record
            self._case_id = record.id
            self._start_step2(to_date_input(cleaned.date_of_fir))
            logger.info("step1_saved", case_id=record.id)

    async def confirm_step1(self) -> None:
        """Persist the edited particulars of a completed case."""
        self._require(FilingState.STEP1_FINAL_CONFIRM)
        if self._form is None or self._case_id is None:
            msg = "Nothing to confirm"
            raise WorkflowStateError(msg)
        with self._guard.operation("confirm_step1") as ticket:
            try:
                await self._records.update_case(self._case_id, self._form.to_payload())
            except WritTraxError as exc:
                self._request_failed(exc, ticket, FilingState.STEP1)
                raise
            self._guard.ensure_current(ticket)
            self._finish()

    def back_to_step1(self) -> None:
        self._require(FilingState.STEP2_DRAFT)
        self._state = FilingState.STEP1
        self._form_open = True

    def cancel_confirmation(self) -> None:
        if self._state == FilingState.STEP1_FINAL_CONFIRM:
            self._state = FilingState.STEP1
        elif self._state == FilingState.STEP2_FINAL_CONFIRM:
            self._state = FilingState.STEP2_DRAFT
        else:
            msg = "No confirmation is pending"
            raise WorkflowStateError(msg, details={"state": self._state.value})

    # --- Step 2 editing ---

    def select_type(self, proceeding_type: ProceedingType) -> None:
        editor = self._require_editor()
        if proceeding_type not in self.available_types():
            self._reject(FormValidationError(ARGUMENT_NOT_ALLOWED_MESSAGE, field="type"))
        editor.select_type(proceeding_type)

    def _edit(self, action: Callable[[ProceedingEditor], Any]) -> Any:
        editor = self._require_editor()
        try:
            result = action(editor)
        except FormValidationError as exc:
            self._reject(exc)
        self._error = None
        return result

    def add_entry(self) -> int:
        return self._edit(lambda e: e.add_entry())

    def remove_entry(self, index: int) -> None:
        self._edit(lambda e: e.remove_entry(index))

    def update_entry(self, index: int, **fields: Any) -> None:
        self._edit(lambda e: e.update_entry(index, **fields))

    def update_hearing(self, **fields: Any) -> None:
        self._edit(lambda e: e.update_hearing(**fields))

    def update_decision(self, **fields: Any) -> None:
        self._edit(lambda e: e.update_decision(**fields))

    def update_proceeding_fields(self, **fields: Any) -> None:
        self._edit(lambda e: e.update_fields(**fields))

    def attach(self, index: int, file: PendingFile) -> None:
        self._edit(lambda e: e.attach(index, file))

    def detach(self, index: int) -> None:
        self._edit(lambda e: e.detach(index))

    def attach_decision(self, file: PendingFile) -> None:
        self._edit(lambda e: e.attach_decision(file))

    def attach_order(self, file: PendingFile) -> None:
        self._edit(lambda e: e.attach_order(file))

    # --- Step 2 submission ---

    async def save_draft(self) -> None:
        """Save and close: persist as a draft, keep the case for later resume."""
        editor = self._require_editor()
        submission = editor.submission(draft=True, default_hearing_date=self._today().isoformat())
        with self._guard.operation("save_draft") as ticket:
            try:
                saved = await self._records.create_proceeding(submission)
            except WritTraxError as exc:
                self._request_failed(exc, ticket, FilingState.STEP2_DRAFT)
                raise
            self._guard.ensure_current(ticket)
            self._editor = ProceedingEditor.from_proceeding(saved)
            self._form_open = False
            self._error = None
            logger.info("draft_saved", case_id=self._case_id, proceeding_id=saved.id)

    def request_final_submit(self) -> None:
        """Validate the proceeding for final submission and ask for confirmation."""
        editor = self._require_editor()
        try:
            validate_final_proceeding(editor.form)
        except FormValidationError as exc:
            self._reject(exc)
        self._error = None
        self._state = FilingState.STEP2_FINAL_CONFIRM

    async def confirm_final_submit(self) -> Proceeding | None:
        """Persist the proceeding as final. The session ends on success."""
        self._require(FilingState.STEP2_FINAL_CONFIRM)
        if self._editor is None:
            msg = "No proceeding is being edited"
            raise WorkflowStateError(msg)
        submission = self._editor.submission(draft=False)
        with self._guard.operation("confirm_final_submit") as ticket:
            try:
                saved = await self._records.create_proceeding(submission)
            except WritTraxError as exc:
                self._request_failed(exc, ticket, FilingState.STEP2_DRAFT)
                raise
            self._guard.ensure_current(ticket)
            self._finish()
            return saved
        return None
