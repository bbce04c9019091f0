"""Core domain models and enumerations.

These are the canonical persisted shapes exchanged with the case-record
service. Field names are snake_case in Python and camelCase on the wire;
the few keys the service spells irregularly (``_id``, ``dateOfFIR``,
``appearingAGDetails``, ``replyScrutinizedByHC``, ``from``) carry explicit
aliases. Every model is frozen: edits produce new instances.

Legacy record shapes are resolved once, at validation time, into the
current canonical shape so no downstream code reads a legacy field.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class WritType(StrEnum):
    """Kind of writ petition a case record tracks."""

    BAIL = "BAIL"
    QUASHING = "QUASHING"
    DIRECTION = "DIRECTION"
    SUSPENSION_OF_SENTENCE = "SUSPENSION_OF_SENTENCE"
    PAROLE = "PAROLE"
    ANY_OTHER = "ANY_OTHER"


class BailSubType(StrEnum):
    ANTICIPATORY = "ANTICIPATORY"
    REGULAR = "REGULAR"


class WritStatus(StrEnum):
    """Decision outcome recorded on a proceeding; drives the case status."""

    ALLOWED = "ALLOWED"
    PENDING = "PENDING"
    DISMISSED = "DISMISSED"
    WITHDRAWN = "WITHDRAWN"
    DIRECTION = "DIRECTION"


class ProceedingType(StrEnum):
    """Variant tag of a proceeding. Exactly one payload matches it."""

    NOTICE_OF_MOTION = "NOTICE_OF_MOTION"
    TO_FILE_REPLY = "TO_FILE_REPLY"
    ARGUMENT = "ARGUMENT"
    ANY_OTHER = "ANY_OTHER"


class AttendanceMode(StrEnum):
    """Selects which field group of a notice-of-motion entry applies."""

    BY_FORMAT = "BY_FORMAT"
    BY_PERSON = "BY_PERSON"


class AttachmentChannel(StrEnum):
    """Multipart channel (and payload key) per proceeding variant."""

    NOTICE_OF_MOTION = "noticeOfMotion"
    REPLY_TRACKING = "replyTracking"
    ARGUMENT_DETAILS = "argumentDetails"
    ANY_OTHER_DETAILS = "anyOtherDetails"


VARIANT_CHANNELS: dict[ProceedingType, AttachmentChannel] = {
    ProceedingType.NOTICE_OF_MOTION: AttachmentChannel.NOTICE_OF_MOTION,
    ProceedingType.TO_FILE_REPLY: AttachmentChannel.REPLY_TRACKING,
    ProceedingType.ARGUMENT: AttachmentChannel.ARGUMENT_DETAILS,
    ProceedingType.ANY_OTHER: AttachmentChannel.ANY_OTHER_DETAILS,
}


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class WireModel(BaseModel):
    """Frozen model that reads and writes the service's camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump using wire keys, dropping unset (None) fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _as_list(value: Any) -> Any:
    """Accept a bare object where a sequence is expected."""
    if value is None or isinstance(value, list):
        return value
    return [value]


# ---------------------------------------------------------------------------
# Shared value objects
# ---------------------------------------------------------------------------


class PersonDetails(WireModel):
    """An officer reference: name, rank, mobile."""

    name: str = ""
    rank: str | None = None
    mobile: str | None = None


class HearingDetails(WireModel):
    date_of_hearing: str = ""
    judge_name: str = ""
    court_number: str = ""


class DecisionDetails(WireModel):
    """Court decision recorded against a proceeding."""

    writ_status: WritStatus | None = None
    date_of_decision: str | None = None
    decision_by_court: str | None = None
    remarks: str | None = None
    attachment: str | None = None


# ---------------------------------------------------------------------------
# Variant payloads
# ---------------------------------------------------------------------------


class NoticeOfMotionDetails(WireModel):
    """Notice-of-motion entry.

    Also the editable record for TO_FILE_REPLY proceedings, which is why it
    carries the reply-tracking fields. ``appearing_ag`` and
    ``attending_officer`` are legacy structured fields that are read but
    never written back.
    """

    attendance_mode: AttendanceMode = AttendanceMode.BY_FORMAT
    format_submitted: bool | None = None
    format_filled_by: PersonDetails | None = None
    appearing_ag: PersonDetails | None = Field(default=None, alias="appearingAG")
    appearing_ag_details: str | None = Field(default=None, alias="appearingAGDetails")
    aag_dg_who_will_appear: str | None = None
    attending_officer: PersonDetails | None = None
    attending_officer_details: str | None = None
    investigating_officer: PersonDetails | None = None
    details: str = ""
    next_date_of_hearing: str | None = None
    attachment: str | None = None

    # Reply tracking (TO_FILE_REPLY editing only)
    officer_deputed_for_reply: str | None = None
    vetting_officer_details: str | None = None
    reply_filed: bool | None = None
    reply_filing_date: str | None = None
    advocate_general_name: str | None = None
    reply_scrutinized_by_hc: bool | None = Field(default=None, alias="replyScrutinizedByHC")
    investigating_officer_name: str | None = None
    proceeding_in_court: str | None = None
    order_in_short: str | None = None
    next_actionable_point: str | None = None
    next_date_of_hearing_reply: str | None = None


class ReplyTrackingDetails(WireModel):
    """Persisted TO_FILE_REPLY entry."""

    officer_deputed_for_reply: str | None = None
    vetting_officer_details: str | None = None
    reply_filed: bool | None = None
    reply_filing_date: str | None = None
    advocate_general_name: str | None = None
    reply_scrutinized_by_hc: bool | None = Field(default=None, alias="replyScrutinizedByHC")
    investigating_officer_name: str | None = None
    proceeding_in_court: str | None = None
    order_in_short: str | None = None
    next_actionable_point: str | None = None
    next_date_of_hearing_reply: str | None = None
    attachment: str | None = None


class ArgumentDetails(WireModel):
    argument_by: str | None = None
    argument_with: str | None = None
    next_date_of_hearing: str | None = None
    attachment: str | None = None


class AnyOtherDetails(WireModel):
    attending_officer_details: str | None = None
    officer_details: PersonDetails | None = None
    appearing_ag_details: str | None = Field(default=None, alias="appearingAGDetails")
    details: str | None = None
    attachment: str | None = None


VariantEntry = NoticeOfMotionDetails | ArgumentDetails | AnyOtherDetails
PersistedEntry = NoticeOfMotionDetails | ReplyTrackingDetails | ArgumentDetails | AnyOtherDetails

_PAYLOAD_FIELDS: dict[ProceedingType, str] = {
    ProceedingType.NOTICE_OF_MOTION: "notice_of_motion",
    ProceedingType.TO_FILE_REPLY: "reply_tracking",
    ProceedingType.ARGUMENT: "argument_details",
    ProceedingType.ANY_OTHER: "any_other_details",
}


# ---------------------------------------------------------------------------
# Proceeding
# ---------------------------------------------------------------------------


class Proceeding(WireModel):
    """A proceeding as returned by the service.

    Variant payloads are always held as non-empty sequences; a bare object
    from the wire is wrapped on load.
    """

    id: str = Field(alias="_id")
    fir: str
    sequence: int | None = None
    type: ProceedingType
    summary: str | None = None
    details: str | None = None
    hearing_details: HearingDetails | None = None
    notice_of_motion: list[NoticeOfMotionDetails] | None = None
    reply_tracking: list[ReplyTrackingDetails] | None = None
    argument_details: list[ArgumentDetails] | None = None
    any_other_details: list[AnyOtherDetails] | None = None
    decision_details: DecisionDetails | None = None
    draft: bool = False
    order_of_proceeding_filename: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("fir", mode="before")
    @classmethod
    def _resolve_fir(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("_id") or value.get("id")
        return value

    @field_validator(
        "notice_of_motion",
        "reply_tracking",
        "argument_details",
        "any_other_details",
        mode="before",
    )
    @classmethod
    def _wrap_single(cls, value: Any) -> Any:
        return _as_list(value)

    def persisted_entries(
        self,
        proceeding_type: ProceedingType | None = None,
    ) -> list[PersistedEntry]:
        """Entries stored under the payload key of ``proceeding_type``."""
        field = _PAYLOAD_FIELDS[proceeding_type or self.type]
        return list(getattr(self, field) or [])


# ---------------------------------------------------------------------------
# Case record (FIR)
# ---------------------------------------------------------------------------


class Respondent(WireModel):
    name: str = ""
    designation: str | None = None


class InvestigatingOfficer(WireModel):
    name: str = ""
    rank: str = ""
    posting: str = ""
    contact: int = 0
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None

    @field_validator("contact", mode="before")
    @classmethod
    def _coerce_contact(cls, value: Any) -> Any:
        if value is None or value == "":
            return 0
        return value


class LegacyOfficerFields(WireModel):
    """Flat single-officer fields carried by records filed before multi-officer support."""

    investigating_officer: str | None = None
    investigating_officer_rank: str | None = None
    investigating_officer_posting: str | None = None
    investigating_officer_contact: int | None = None
    investigating_officer_from: str | None = None
    investigating_officer_to: str | None = None

    def as_officer(self) -> InvestigatingOfficer:
        return InvestigatingOfficer(
            name=self.investigating_officer or "",
            rank=self.investigating_officer_rank or "",
            posting=self.investigating_officer_posting or "",
            contact=self.investigating_officer_contact or 0,
            from_=self.investigating_officer_from,
            to=self.investigating_officer_to,
        )


class CaseRecord(WireModel):
    """A writ case record (FIR). ``status`` is derived server-side."""

    id: str = Field(alias="_id")
    fir_number: str = ""
    title: str | None = None
    description: str | None = None
    date_of_fir: str = Field(default="", alias="dateOfFIR")
    date_of_filing: str | None = None
    branch_name: str = ""
    branch: str | None = None
    writ_number: str = ""
    writ_type: WritType
    writ_year: int | None = None
    writ_sub_type: BailSubType | None = None
    writ_type_other: str | None = None
    under_section: str = ""
    act: str = ""
    police_station: str = ""
    sections: list[str] = Field(default_factory=list)
    investigating_officers: list[InvestigatingOfficer] = Field(default_factory=list)
    petitioner_name: str = ""
    petitioner_father_name: str = ""
    petitioner_address: str = ""
    petitioner_prayer: str = ""
    respondents: list[Respondent] = Field(default_factory=list)
    linked_writs: list[str] = Field(default_factory=list)
    status: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _resolve_legacy_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["respondents"] = [
            {"name": item} if isinstance(item, str) else item
            for item in data.get("respondents") or []
        ]
        if not data.get("investigatingOfficers") and data.get("investigatingOfficer"):
            legacy = LegacyOfficerFields.model_validate(data)
            data["investigatingOfficers"] = [legacy.as_officer().to_wire()]
        return data


# ---------------------------------------------------------------------------
# Dashboard aggregates and auth
# ---------------------------------------------------------------------------


class StatusCount(WireModel):
    status: str | None = None
    count: int = 0


class DashboardMetrics(WireModel):
    total_cases: int = 0
    closed_cases: int = 0
    ongoing_cases: int = 0
    status_counts: list[StatusCount] = Field(default_factory=list)


class BranchCount(WireModel):
    branch: str = ""
    count: int = 0


class WritTypeCount(WireModel):
    type: str
    count: int = 0


class FilingMetrics(WireModel):
    """Filed, pending and overdue counts for motions or affidavits."""

    filed: int = 0
    pending: int = 0
    overdue: int = 0


class LoginResult(WireModel):
    token: str
    role: str | None = None
    branch: str | None = None
    logged: bool | None = None
