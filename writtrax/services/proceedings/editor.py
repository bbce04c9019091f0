"""Editable proceeding: the form plus its attachment ledger.

Both workflows edit proceedings through a ``ProceedingEditor`` so entry
removal always reindexes pending uploads and a type switch always runs the
ledger's destructive reset. The editor holds no I/O.
"""

from __future__ import annotations

from typing import Any, Literal

import structlog

from writtrax.core.exceptions import FormValidationError
from writtrax.models.domain import VARIANT_CHANNELS, DecisionDetails, Proceeding, ProceedingType
from writtrax.models.forms import ENTRY_MODELS, ProceedingForm, evolve
from writtrax.services.proceedings.attachments import AttachmentLedger, PendingFile
from writtrax.services.proceedings.normalizer import (
    ProceedingSubmission,
    build_submission,
    empty_entry,
    empty_form,
    load_form,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

ExistingSlot = int | Literal["decision", "order"]


class ProceedingEditor:
    """Mutable editing session over an immutable ``ProceedingForm``."""

    def __init__(self, form: ProceedingForm, ledger: AttachmentLedger | None = None) -> None:
        self._form = form
        self._ledger = ledger or AttachmentLedger.for_type(form.type)

    @classmethod
    def new(
        cls,
        case_id: str,
        proceeding_type: ProceedingType = ProceedingType.NOTICE_OF_MOTION,
        *,
        hearing_date: str = "",
    ) -> ProceedingEditor:
        return cls(empty_form(case_id, proceeding_type, hearing_date=hearing_date))

    @classmethod
    def from_proceeding(cls, proceeding: Proceeding) -> ProceedingEditor:
        return cls(load_form(proceeding))

    @property
    def form(self) -> ProceedingForm:
        return self._form

    @property
    def ledger(self) -> AttachmentLedger:
        return self._ledger

    @property
    def type(self) -> ProceedingType:
        return self._form.type

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._form.entries):
            msg = f"No entry at index {index}"
            raise FormValidationError(msg, field="entries")

    # --- Form fields ---

    def update_fields(self, **fields: Any) -> None:
        """Update top-level text fields (``summary``, ``details``)."""
        disallowed = set(fields) - {"summary", "details"}
        if disallowed:
            msg = f"Field(s) not editable here: {', '.join(sorted(disallowed))}"
            raise FormValidationError(msg)
        self._form = evolve(self._form, **fields)

    def update_hearing(self, **fields: Any) -> None:
        self._form = evolve(self._form, hearing_details=evolve(self._form.hearing_details, **fields))

    def update_decision(self, **fields: Any) -> None:
        self._form = evolve(self._form, decision_details=evolve(self._form.decision_details, **fields))

    # --- Entries ---

    def add_entry(self) -> int:
        """Append an empty entry of the current type; return its index."""
        self._form = evolve(self._form, entries=[*self._form.entries, empty_entry(self._form.type)])
        return len(self._form.entries) - 1

    def remove_entry(self, index: int) -> None:
        """Remove entry ``index`` and shift pending uploads to follow their entries."""
        self._check_index(index)
        if len(self._form.entries) == 1:
            msg = "A proceeding needs at least one entry"
            raise FormValidationError(msg, field="entries")
        entries = [e for i, e in enumerate(self._form.entries) if i != index]
        self._form = evolve(self._form, entries=entries)
        self._ledger.reindex_on_remove(index)

    def update_entry(self, index: int, **fields: Any) -> None:
        self._check_index(index)
        entries = list(self._form.entries)
        entries[index] = evolve(entries[index], **fields)
        self._form = evolve(self._form, entries=entries)

    def select_type(self, new_type: ProceedingType) -> None:
        """Change type while nothing persisted is at stake.

        Types sharing an editable record (notice of motion and reply) keep
        their entries and pending files; any other change resets to one
        empty entry.
        """
        if new_type == self._form.type:
            return
        if ENTRY_MODELS[new_type] is ENTRY_MODELS[self._form.type]:
            self._form = evolve(self._form, type=new_type)
            self._ledger.retarget(VARIANT_CHANNELS[new_type])
            return
        self.switch_type(new_type)

    def switch_type(
        self,
        new_type: ProceedingType,
        *,
        discarded: list[str] | tuple[str, ...] = (),
        reset_decision: bool = False,
    ) -> None:
        """Reset to one empty entry of ``new_type``.

        Pending selections are dropped and ``discarded`` persisted filenames
        are queued for deletion.
        """
        changes: dict[str, Any] = {"type": new_type, "entries": [empty_entry(new_type)]}
        if reset_decision:
            changes["decision_details"] = DecisionDetails()
            changes["order_of_proceeding_filename"] = None
        self._form = evolve(self._form, **changes)
        self._ledger.switch_channel(VARIANT_CHANNELS[new_type], discarded)
        logger.info(
            "proceeding_type_switched",
            proceeding_type=new_type,
            discarded=len(discarded),
        )

    # --- Attachments ---

    def attach(self, index: int, file: PendingFile) -> None:
        self._check_index(index)
        self._ledger.attach(index, file)

    def detach(self, index: int) -> None:
        self._ledger.detach(index)

    def attach_decision(self, file: PendingFile) -> None:
        self._ledger.attach_decision(file)

    def attach_order(self, file: PendingFile) -> None:
        self._ledger.attach_order(file)

    def remove_existing_attachment(self, slot: ExistingSlot) -> str | None:
        """Queue a persisted attachment for deletion and clear it from the form.

        Returns the filename queued, or None when the slot held no file.
        """
        filename: str | None
        if slot == "decision":
            filename = self._form.decision_details.attachment
            if filename:
                self.update_decision(attachment=None)
        elif slot == "order":
            filename = self._form.order_of_proceeding_filename
            if filename:
                self._form = evolve(self._form, order_of_proceeding_filename=None)
        else:
            self._check_index(slot)
            filename = self._form.entries[slot].attachment
            if filename:
                self.update_entry(slot, attachment=None)
        if filename:
            self._ledger.mark_existing_for_deletion(filename)
        return filename

    # --- Submission ---

    def submission(self, *, draft: bool, default_hearing_date: str = "") -> ProceedingSubmission:
        return build_submission(
            self._form,
            draft=draft,
            instructions=self._ledger.build_save_instructions(),
            default_hearing_date=default_hearing_date,
        )
