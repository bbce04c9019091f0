"""Proceeding edit workflow.

Edits a proceeding that is already on file. Only allowed once its case is
complete (has a non-draft proceeding). Changing the proceeding's type is
destructive: every persisted attachment of the old type, the decision
attachment and the order-of-proceeding file are queued for deletion and
the entries reset. That switch waits in PENDING_TYPE_CHANGE_CONFIRM until
confirmed, and the save confirmation then carries an irreversibility
warning.

States::

    LOADING -> READY -> (PENDING_TYPE_CHANGE_CONFIRM -> TYPE_CHANGED)
            -> CONFIRM -> SAVING -> DONE
    SAVING failure -> back to READY / TYPE_CHANGED with edits intact
    LOADING failure or incomplete case -> UNAVAILABLE
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any, NoReturn

import structlog

from writtrax.core.exceptions import (
    AuthenticationError,
    FormValidationError,
    WorkflowStateError,
    WritTraxError,
    user_message,
)
from writtrax.models.domain import ProceedingType, WritType
from writtrax.services.proceedings.attachments import collect_persisted_attachments
from writtrax.services.proceedings.editor import ExistingSlot, ProceedingEditor
from writtrax.services.proceedings.validators import validate_final_proceeding
from writtrax.services.workflow.session import SessionGuard

if TYPE_CHECKING:
    from writtrax.models.domain import CaseRecord, Proceeding
    from writtrax.models.forms import ProceedingForm
    from writtrax.services.client.records import CaseRecords
    from writtrax.services.proceedings.attachments import AttachmentLedger, PendingFile

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

CASE_INCOMPLETE_MESSAGE = "Cannot edit proceeding: FIR must be fully completed before editing."
MISSING_HEARING_DATE_MESSAGE = "Please fill in required fields (Hearing Date)"
ARGUMENT_NOT_ALLOWED_MESSAGE = "ARGUMENT proceedings are only available for QUASHING writs."


class EditState(StrEnum):
    LOADING = "LOADING"
    READY = "READY"
    PENDING_TYPE_CHANGE_CONFIRM = "PENDING_TYPE_CHANGE_CONFIRM"
    TYPE_CHANGED = "TYPE_CHANGED"
    CONFIRM = "CONFIRM"
    SAVING = "SAVING"
    DONE = "DONE"
    UNAVAILABLE = "UNAVAILABLE"


_EDITABLE = (EditState.READY, EditState.TYPE_CHANGED)


class ProceedingEditWorkflow:
    """State machine for editing one filed proceeding."""

    def __init__(self, records: CaseRecords) -> None:
        self._records = records
        self._guard = SessionGuard("proceeding_edit")
        self._state = EditState.LOADING
        self._original: Proceeding | None = None
        self._original_form: ProceedingForm | None = None
        self._case: CaseRecord | None = None
        self._editor: ProceedingEditor | None = None
        self._pending_type: ProceedingType | None = None
        self._type_changed = False
        self._return_state = EditState.READY
        self._saved: Proceeding | None = None
        self._error: str | None = None
        self._has_argument_proceeding = False

    # --- Session properties ---

    @property
    def state(self) -> EditState:
        return self._state

    @property
    def proceeding_id(self) -> str | None:
        return self._original.id if self._original else None

    @property
    def case_id(self) -> str | None:
        return self._original.fir if self._original else None

    @property
    def session_id(self) -> str:
        return self._guard.session_id

    @property
    def edit_mode(self) -> bool:
        return True

    @property
    def resuming_incomplete(self) -> bool:
        return False

    @property
    def has_argument_proceeding(self) -> bool:
        return self._has_argument_proceeding

    @property
    def original(self) -> Proceeding | None:
        return self._original

    @property
    def proceeding(self) -> ProceedingForm | None:
        return self._editor.form if self._editor else None

    @property
    def ledger(self) -> AttachmentLedger | None:
        return self._editor.ledger if self._editor else None

    @property
    def pending_type(self) -> ProceedingType | None:
        return self._pending_type

    @property
    def type_changed(self) -> bool:
        return self._type_changed

    @property
    def requires_irreversible_warning(self) -> bool:
        """True while the save confirmation would commit a type change."""
        return self._state == EditState.CONFIRM and self._type_changed

    @property
    def saved(self) -> Proceeding | None:
        return self._saved

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def in_flight(self) -> bool:
        return self._guard.in_flight

    # --- Internals ---

    def _require(self, *states: EditState) -> None:
        if self._state not in states:
            allowed = ", ".join(s.value for s in states)
            msg = f"Operation not allowed in state {self._state.value} (expected {allowed})"
            raise WorkflowStateError(msg, details={"state": self._state.value})

    def _require_editor(self) -> ProceedingEditor:
        self._require(*_EDITABLE)
        if self._editor is None:
            msg = "No proceeding is loaded"
            raise WorkflowStateError(msg)
        return self._editor

    def _loaded(self) -> tuple[Proceeding, ProceedingForm, ProceedingEditor]:
        if self._original is None or self._original_form is None or self._editor is None:
            msg = "No proceeding is loaded"
            raise WorkflowStateError(msg, details={"state": self._state.value})
        return self._original, self._original_form, self._editor

    def _reject(self, exc: FormValidationError) -> NoReturn:
        self._error = exc.message
        raise exc

    def _edit(self, action: Any) -> Any:
        editor = self._require_editor()
        try:
            result = action(editor)
        except FormValidationError as exc:
            self._reject(exc)
        self._error = None
        return result

    def available_types(self) -> list[ProceedingType]:
        writ_type = self._case.writ_type if self._case else None
        return [
            t
            for t in ProceedingType
            if t != ProceedingType.ARGUMENT or writ_type == WritType.QUASHING
        ]

    # --- Loading ---

    async def load(self, proceeding_id: str) -> None:
        """Fetch the proceeding and its case and check the case is complete."""
        self._require(EditState.LOADING, EditState.UNAVAILABLE)
        self._state = EditState.LOADING
        with self._guard.operation("load") as ticket:
            try:
                proceeding = await self._records.get_proceeding(proceeding_id)
                siblings = await self._records.list_proceedings_for_case(proceeding.fir, fresh=True)
                case = await self._records.get_case(proceeding.fir)
            except WritTraxError as exc:
                self._guard.ensure_current(ticket)
                self._state = EditState.UNAVAILABLE
                self._error = user_message(exc)
                logger.warning("proceeding_load_failed", proceeding_id=proceeding_id, error=self._error)
                raise
            self._guard.ensure_current(ticket)

            if not any(not p.draft for p in siblings):
                self._state = EditState.UNAVAILABLE
                self._error = CASE_INCOMPLETE_MESSAGE
                raise WorkflowStateError(CASE_INCOMPLETE_MESSAGE, details={"case_id": proceeding.fir})

            self._original = proceeding
            self._case = case
            self._has_argument_proceeding = any(
                not p.draft and p.type == ProceedingType.ARGUMENT for p in siblings
            )
            self._editor = ProceedingEditor.from_proceeding(proceeding)
            self._original_form = self._editor.form
            self._type_changed = False
            self._pending_type = None
            self._error = None
            self._state = EditState.READY
            logger.info(
                "proceeding_loaded",
                proceeding_id=proceeding_id,
                case_id=proceeding.fir,
                proceeding_type=proceeding.type,
            )

    # --- Type change ---

    def change_type(self, new_type: ProceedingType) -> None:
        """Request a type change.

        Leaving the stored type while it has persisted files waits for
        ``confirm_type_change``. Choosing the stored type again restores the
        loaded proceeding and drops the queued deletions.
        """
        self._require(*_EDITABLE)
        original, original_form, editor = self._loaded()
        if new_type not in self.available_types():
            self._reject(FormValidationError(ARGUMENT_NOT_ALLOWED_MESSAGE, field="type"))

        if new_type == original.type:
            if self._type_changed:
                self._editor = ProceedingEditor(original_form)
                self._type_changed = False
                self._state = EditState.READY
                logger.info("proceeding_type_change_reverted", proceeding_id=original.id)
            return
        if new_type == editor.type:
            return
        if self._type_changed:
            editor.switch_type(new_type, reset_decision=True)
            return

        if collect_persisted_attachments(original):
            self._pending_type = new_type
            self._state = EditState.PENDING_TYPE_CHANGE_CONFIRM
            logger.info("proceeding_type_change_pending", proceeding_type=new_type)
            return
        self._apply_type_change(new_type)

    def confirm_type_change(self) -> None:
        self._require(EditState.PENDING_TYPE_CHANGE_CONFIRM)
        if self._pending_type is None:
            msg = "No type change is pending"
            raise WorkflowStateError(msg)
        self._apply_type_change(self._pending_type)

    def cancel_type_change(self) -> None:
        self._require(EditState.PENDING_TYPE_CHANGE_CONFIRM)
        self._pending_type = None
        self._state = EditState.READY

    def _apply_type_change(self, new_type: ProceedingType) -> None:
        original, _, editor = self._loaded()
        discarded = collect_persisted_attachments(original)
        editor.switch_type(new_type, discarded=discarded, reset_decision=True)
        self._pending_type = None
        self._type_changed = True
        self._state = EditState.TYPE_CHANGED
        logger.info(
            "proceeding_type_changed",
            proceeding_id=original.id,
            from_type=original.type,
            to_type=new_type,
            files_to_delete=len(discarded),
        )

    # --- Editing ---

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

    def remove_existing_attachment(self, slot: ExistingSlot) -> str | None:
        return self._edit(lambda e: e.remove_existing_attachment(slot))

    # --- Saving ---

    def request_save(self) -> None:
        """Validate and move to the save confirmation."""
        self._require(*_EDITABLE)
        original, _, editor = self._loaded()
        if original.draft:
            if not editor.form.hearing_details.date_of_hearing:
                self._reject(FormValidationError(MISSING_HEARING_DATE_MESSAGE, field="hearing_details"))
        else:
            try:
                validate_final_proceeding(editor.form)
            except FormValidationError as exc:
                self._reject(exc)
        self._error = None
        self._return_state = self._state
        self._state = EditState.CONFIRM

    def cancel_confirmation(self) -> None:
        self._require(EditState.CONFIRM)
        self._state = self._return_state

    async def confirm_save(self) -> Proceeding | None:
        """Send the update with the ledger's uploads and deletions."""
        self._require(EditState.CONFIRM)
        original, _, editor = self._loaded()
        submission = editor.submission(draft=original.draft)
        with self._guard.operation("confirm_save") as ticket:
            self._state = EditState.SAVING
            try:
                saved = await self._records.update_proceeding(original.id, submission)
            except WritTraxError as exc:
                self._guard.ensure_current(ticket)
                self._error = user_message(exc)
                if isinstance(exc, AuthenticationError):
                    self._guard.teardown()
                    self._state = EditState.UNAVAILABLE
                else:
                    self._state = self._return_state
                logger.warning("proceeding_save_failed", proceeding_id=original.id, error=self._error)
                raise
            self._guard.ensure_current(ticket)
            self._saved = saved
            self._state = EditState.DONE
            logger.info(
                "proceeding_saved",
                proceeding_id=original.id,
                type_changed=self._type_changed,
                files_deleted=len(submission.instructions.files_to_delete if submission.instructions else []),
            )
            return saved
        return None

    def close(self) -> None:
        """Discard the session; a response still in flight is dropped."""
        self._guard.teardown()
        self._state = EditState.UNAVAILABLE
