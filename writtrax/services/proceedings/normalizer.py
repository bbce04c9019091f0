"""Variant normalizer: persisted proceeding payloads <-> editable entries.

Pure functions, no I/O. Two directions:

- **Load** turns a stored ``Proceeding`` into a ``ProceedingForm`` whose
  entries are always a non-empty sequence. TO_FILE_REPLY entries are read
  from ``replyTracking`` and presented as notice-of-motion shaped records
  with the notice-of-motion-only fields explicitly set to None.
- **Save** projects the editable entries back to the persisted shape of
  the active type and applies the single/sequence collapse. The collapse
  happens only here, at the serialization boundary.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from writtrax.models.domain import (
    VARIANT_CHANNELS,
    AnyOtherDetails,
    ArgumentDetails,
    AttendanceMode,
    DecisionDetails,
    HearingDetails,
    NoticeOfMotionDetails,
    PersistedEntry,
    PersonDetails,
    Proceeding,
    ProceedingType,
    ReplyTrackingDetails,
    VariantEntry,
)
from writtrax.models.forms import ENTRY_MODELS, ProceedingForm
from writtrax.utils.dates import to_date_input

if TYPE_CHECKING:
    from writtrax.services.proceedings.attachments import SaveInstructions

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

# Editable (notice-of-motion shaped) field -> persisted ReplyTrackingDetails field.
REPLY_FIELD_MAP: dict[str, str] = {
    "officer_deputed_for_reply": "officer_deputed_for_reply",
    "vetting_officer_details": "vetting_officer_details",
    "reply_filed": "reply_filed",
    "reply_filing_date": "reply_filing_date",
    "advocate_general_name": "advocate_general_name",
    "reply_scrutinized_by_hc": "reply_scrutinized_by_hc",
    "investigating_officer_name": "investigating_officer_name",
    "proceeding_in_court": "proceeding_in_court",
    "order_in_short": "order_in_short",
    "next_actionable_point": "next_actionable_point",
    "next_date_of_hearing_reply": "next_date_of_hearing_reply",
    "attachment": "attachment",
}

_REPLY_DATE_FIELDS = ("reply_filing_date", "next_date_of_hearing_reply")

_NOTICE_ONLY_FIELDS = (
    "format_submitted",
    "format_filled_by",
    "appearing_ag",
    "appearing_ag_details",
    "aag_dg_who_will_appear",
    "attending_officer",
    "attending_officer_details",
    "investigating_officer",
    "next_date_of_hearing",
)

_BY_FORMAT_FIELDS = ("format_submitted", "format_filled_by", "aag_dg_who_will_appear")
_BY_PERSON_FIELDS = ("attending_officer_details", "appearing_ag_details")


# ---------------------------------------------------------------------------
# Officer resolution: current structured shape vs legacy free-text name
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LegacyOfficerName:
    """A notice-of-motion entry recorded before the structured officer existed."""

    name: str

    def resolve(self) -> PersonDetails:
        return PersonDetails(name=self.name, rank="", mobile="")


def officer_source(entry: NoticeOfMotionDetails) -> PersonDetails | LegacyOfficerName | None:
    """Classify where an entry's investigating officer is recorded."""
    if entry.investigating_officer is not None:
        return entry.investigating_officer
    if entry.investigating_officer_name:
        return LegacyOfficerName(entry.investigating_officer_name)
    return None


def resolve_officer(entry: NoticeOfMotionDetails) -> PersonDetails:
    """Canonical investigating officer for display and editing."""
    source = officer_source(entry)
    if isinstance(source, LegacyOfficerName):
        return source.resolve()
    return _filled_person(source)


def _filled_person(person: PersonDetails | None) -> PersonDetails:
    if person is None:
        return PersonDetails(name="", rank="", mobile="")
    return PersonDetails(name=person.name or "", rank=person.rank or "", mobile=person.mobile or "")


# ---------------------------------------------------------------------------
# Empty entries
# ---------------------------------------------------------------------------


def empty_entry(proceeding_type: ProceedingType) -> VariantEntry:
    """A blank editable entry for ``proceeding_type``."""
    if proceeding_type in (ProceedingType.NOTICE_OF_MOTION, ProceedingType.TO_FILE_REPLY):
        return NoticeOfMotionDetails(
            attendance_mode=AttendanceMode.BY_FORMAT,
            format_submitted=False,
            format_filled_by=_filled_person(None),
            aag_dg_who_will_appear="",
            appearing_ag_details="",
            attending_officer_details="",
            investigating_officer=_filled_person(None),
            details="",
            officer_deputed_for_reply="",
            vetting_officer_details="",
            reply_filed=False,
            reply_filing_date="",
            advocate_general_name="",
            reply_scrutinized_by_hc=False,
            investigating_officer_name="",
            proceeding_in_court="",
            order_in_short="",
            next_actionable_point="",
            next_date_of_hearing_reply="",
        )
    if proceeding_type == ProceedingType.ARGUMENT:
        return ArgumentDetails(argument_by="", argument_with="", next_date_of_hearing="")
    return AnyOtherDetails(
        attending_officer_details="",
        officer_details=_filled_person(None),
        appearing_ag_details="",
        details="",
    )


def empty_form(
    case_id: str,
    proceeding_type: ProceedingType = ProceedingType.NOTICE_OF_MOTION,
    *,
    hearing_date: str = "",
) -> ProceedingForm:
    return ProceedingForm(
        case_id=case_id,
        type=proceeding_type,
        hearing_details=HearingDetails(date_of_hearing=hearing_date),
        entries=[empty_entry(proceeding_type)],
    )


# ---------------------------------------------------------------------------
# Load direction
# ---------------------------------------------------------------------------


def _reply_as_editable(reply: ReplyTrackingDetails) -> NoticeOfMotionDetails:
    values: dict[str, Any] = {
        editable: getattr(reply, persisted) for editable, persisted in REPLY_FIELD_MAP.items()
    }
    for name in _REPLY_DATE_FIELDS:
        values[name] = to_date_input(values[name]) if values[name] else values[name]
    return NoticeOfMotionDetails(
        attendance_mode=AttendanceMode.BY_FORMAT,
        details="",
        **{name: None for name in _NOTICE_ONLY_FIELDS},
        **values,
    )


def _notice_as_editable(entry: NoticeOfMotionDetails) -> NoticeOfMotionDetails:
    by_person = entry.attendance_mode == AttendanceMode.BY_PERSON
    return entry.model_copy(
        update={
            "format_submitted": bool(entry.format_submitted),
            "format_filled_by": _filled_person(entry.format_filled_by),
            "appearing_ag": None,
            "attending_officer": None,
            "appearing_ag_details": (entry.appearing_ag_details or "") if by_person else None,
            "aag_dg_who_will_appear": None if by_person else (entry.aag_dg_who_will_appear or ""),
            "attending_officer_details": (entry.attending_officer_details or "") if by_person else None,
            "investigating_officer": resolve_officer(entry),
            "next_date_of_hearing": to_date_input(entry.next_date_of_hearing) or None,
            **{name: None for name in REPLY_FIELD_MAP if name != "attachment"},
        },
    )


def _argument_as_editable(entry: ArgumentDetails) -> ArgumentDetails:
    return entry.model_copy(update={"next_date_of_hearing": to_date_input(entry.next_date_of_hearing)})


def _any_other_as_editable(entry: AnyOtherDetails) -> AnyOtherDetails:
    return entry.model_copy(update={"officer_details": _filled_person(entry.officer_details)})


def load_entries(proceeding: Proceeding) -> list[VariantEntry]:
    """Editable entry sequence for a stored proceeding.

    A stored payload with no entries yields one empty entry so the
    sequence is never empty.
    """
    persisted = proceeding.persisted_entries()
    entries: list[VariantEntry]
    if proceeding.type == ProceedingType.TO_FILE_REPLY:
        entries = [_reply_as_editable(e) for e in persisted if isinstance(e, ReplyTrackingDetails)]
    elif proceeding.type == ProceedingType.NOTICE_OF_MOTION:
        entries = [_notice_as_editable(e) for e in persisted if isinstance(e, NoticeOfMotionDetails)]
    elif proceeding.type == ProceedingType.ARGUMENT:
        entries = [_argument_as_editable(e) for e in persisted if isinstance(e, ArgumentDetails)]
    else:
        entries = [_any_other_as_editable(e) for e in persisted if isinstance(e, AnyOtherDetails)]
    return entries or [empty_entry(proceeding.type)]


def load_form(proceeding: Proceeding) -> ProceedingForm:
    """Editable form for a stored proceeding, dates normalized for inputs."""
    hearing = proceeding.hearing_details or HearingDetails()
    decision = proceeding.decision_details or DecisionDetails()
    return ProceedingForm(
        case_id=proceeding.fir,
        type=proceeding.type,
        summary=proceeding.summary or "",
        details=proceeding.details or "",
        hearing_details=hearing.model_copy(
            update={"date_of_hearing": to_date_input(hearing.date_of_hearing)},
        ),
        entries=load_entries(proceeding),
        decision_details=decision.model_copy(
            update={"date_of_decision": to_date_input(decision.date_of_decision) or None},
        ),
        order_of_proceeding_filename=proceeding.order_of_proceeding_filename,
    )


# ---------------------------------------------------------------------------
# Save direction
# ---------------------------------------------------------------------------


def to_reply_tracking(entry: NoticeOfMotionDetails) -> ReplyTrackingDetails:
    """One-way field selection through REPLY_FIELD_MAP; unmapped fields are dropped."""
    return ReplyTrackingDetails(
        **{persisted: getattr(entry, editable) for editable, persisted in REPLY_FIELD_MAP.items()},
    )


def _project_notice(entry: NoticeOfMotionDetails) -> NoticeOfMotionDetails:
    # Only the active attendance group is persisted.
    inactive = _BY_PERSON_FIELDS if entry.attendance_mode == AttendanceMode.BY_FORMAT else _BY_FORMAT_FIELDS
    cleared = {name: None for name in inactive}
    cleared.update({name: None for name in REPLY_FIELD_MAP if name != "attachment"})
    cleared.update(appearing_ag=None, attending_officer=None)
    return entry.model_copy(update=cleared)


def project_entries(
    proceeding_type: ProceedingType,
    entries: list[VariantEntry],
) -> list[PersistedEntry]:
    """Project editable entries into the persisted shape of ``proceeding_type``."""
    expected = ENTRY_MODELS[proceeding_type]
    projected: list[PersistedEntry] = []
    for entry in entries:
        if not isinstance(entry, expected):
            msg = f"{type(entry).__name__} cannot be saved as {proceeding_type}"
            raise TypeError(msg)
        if proceeding_type == ProceedingType.TO_FILE_REPLY:
            projected.append(to_reply_tracking(entry))
        elif proceeding_type == ProceedingType.NOTICE_OF_MOTION:
            projected.append(_project_notice(entry))
        else:
            projected.append(entry)
    return projected


def collapse(entries: list[PersistedEntry]) -> dict[str, Any] | list[dict[str, Any]]:
    """Serialize entries: a single entry becomes a bare object, two or more a list."""
    if not entries:
        msg = "Cannot serialize an empty entry sequence"
        raise ValueError(msg)
    if len(entries) == 1:
        return entries[0].to_wire()
    return [entry.to_wire() for entry in entries]


@dataclass(frozen=True)
class ProceedingSubmission:
    """Everything a proceeding create/update sends, minus the files themselves."""

    fir: str
    type: ProceedingType
    hearing_details: HearingDetails
    variant: dict[str, Any] | list[dict[str, Any]]
    draft: bool
    summary: str | None = None
    details: str | None = None
    decision_details: DecisionDetails | None = None
    instructions: SaveInstructions | None = None

    @property
    def variant_key(self) -> str:
        return VARIANT_CHANNELS[self.type].value

    def form_fields(self, *, include_deletions: bool) -> dict[str, str]:
        """Non-file multipart fields. JSON values are pre-encoded."""
        fields: dict[str, str] = {"fir": self.fir, "type": self.type.value}
        if self.summary:
            fields["summary"] = self.summary
        if self.details:
            fields["details"] = self.details
        fields["hearingDetails"] = json.dumps(self.hearing_details.to_wire())
        fields[self.variant_key] = json.dumps(self.variant)
        if self.decision_details is not None:
            fields["decisionDetails"] = json.dumps(self.decision_details.to_wire())
        fields["draft"] = "true" if self.draft else "false"
        if include_deletions and self.instructions and self.instructions.files_to_delete:
            fields["filesToDelete"] = json.dumps(self.instructions.files_to_delete)
        return fields


def build_submission(
    form: ProceedingForm,
    *,
    draft: bool,
    instructions: SaveInstructions | None = None,
    default_hearing_date: str = "",
) -> ProceedingSubmission:
    """Assemble the create/update payload for ``form``.

    Decision details are only sent once a writ status is chosen. A draft
    with no hearing date takes ``default_hearing_date``.
    """
    hearing = form.hearing_details
    if draft and not hearing.date_of_hearing and default_hearing_date:
        hearing = hearing.model_copy(update={"date_of_hearing": default_hearing_date})

    decision = form.decision_details if form.decision_details.writ_status else None
    submission = ProceedingSubmission(
        fir=form.case_id,
        type=form.type,
        hearing_details=hearing,
        variant=collapse(project_entries(form.type, form.entries)),
        draft=draft,
        summary=form.summary or None,
        details=form.details or None,
        decision_details=decision,
        instructions=instructions,
    )
    logger.debug(
        "proceeding_submission_built",
        case_id=form.case_id,
        proceeding_type=form.type,
        entries=len(form.entries),
        draft=draft,
    )
    return submission
