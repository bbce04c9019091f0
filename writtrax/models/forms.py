"""Editable form shapes held by the workflows.

``CaseForm`` is the Step 1 filing form (and the case create/update body).
``ProceedingForm`` is the editable proceeding: its variant entries are
always a non-empty sequence of the record type matching ``type``. Forms
are frozen; every edit goes through ``evolve`` and yields a validated copy.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from writtrax.core.exceptions import FormValidationError
from writtrax.models.domain import (
    AnyOtherDetails,
    ArgumentDetails,
    BailSubType,
    CaseRecord,
    DecisionDetails,
    HearingDetails,
    InvestigatingOfficer,
    NoticeOfMotionDetails,
    ProceedingType,
    Respondent,
    VariantEntry,
    WireModel,
    WritType,
)
from writtrax.utils.dates import to_date_input

ModelT = TypeVar("ModelT", bound=BaseModel)

ENTRY_MODELS: dict[ProceedingType, type[VariantEntry]] = {
    ProceedingType.NOTICE_OF_MOTION: NoticeOfMotionDetails,
    ProceedingType.TO_FILE_REPLY: NoticeOfMotionDetails,
    ProceedingType.ARGUMENT: ArgumentDetails,
    ProceedingType.ANY_OTHER: AnyOtherDetails,
}


def evolve(model: ModelT, **changes: Any) -> ModelT:
    """Return a validated copy of ``model`` with ``changes`` applied.

    Raises:
        FormValidationError: on an unknown field name or an invalid value.
    """
    fields = type(model).model_fields
    unknown = sorted(set(changes) - set(fields))
    if unknown:
        msg = f"Unknown field(s): {', '.join(unknown)}"
        raise FormValidationError(msg, field=unknown[0])
    try:
        return type(model).model_validate({**dict(model), **changes})
    except ValidationError as exc:
        violations = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise FormValidationError(
            violations[0] if violations else "Invalid value",
            violations=violations,
        ) from exc


# ---------------------------------------------------------------------------
# Step 1: case particulars
# ---------------------------------------------------------------------------


class CaseForm(WireModel):
    """Filing particulars as edited in Step 1."""

    fir_number: str = ""
    branch_name: str = ""
    writ_number: str = ""
    writ_type: WritType = WritType.BAIL
    writ_year: int | None = None
    writ_sub_type: BailSubType | None = None
    writ_type_other: str | None = None
    under_section: str = ""
    act: str = ""
    police_station: str = ""
    date_of_fir: str = Field(default="", alias="dateOfFIR")
    sections: list[str] = Field(default_factory=list)
    investigating_officers: list[InvestigatingOfficer] = Field(
        default_factory=lambda: [InvestigatingOfficer()],
    )
    petitioner_name: str = ""
    petitioner_father_name: str = ""
    petitioner_address: str = ""
    petitioner_prayer: str = ""
    respondents: list[Respondent] = Field(default_factory=lambda: [Respondent()])
    linked_writs: list[str] = Field(default_factory=list)

    @classmethod
    def from_case(cls, record: CaseRecord) -> CaseForm:
        """Pre-populate the form from a stored case, keeping at least one row of each list."""
        officers = [
            evolve(
                officer,
                from_=to_date_input(officer.from_) or None,
                to=to_date_input(officer.to) or None,
            )
            for officer in record.investigating_officers
        ]
        return cls(
            fir_number=record.fir_number,
            branch_name=record.branch_name,
            writ_number=record.writ_number,
            writ_type=record.writ_type,
            writ_year=record.writ_year,
            writ_sub_type=record.writ_sub_type,
            writ_type_other=record.writ_type_other,
            under_section=record.under_section,
            act=record.act,
            police_station=record.police_station,
            date_of_fir=to_date_input(record.date_of_fir),
            sections=list(record.sections),
            investigating_officers=officers or [InvestigatingOfficer()],
            petitioner_name=record.petitioner_name,
            petitioner_father_name=record.petitioner_father_name,
            petitioner_address=record.petitioner_address,
            petitioner_prayer=record.petitioner_prayer,
            respondents=list(record.respondents) or [Respondent()],
            linked_writs=list(record.linked_writs),
        )

    def to_payload(self) -> dict[str, Any]:
        """Case create/update body."""
        payload = self.to_wire()
        # Cleared values must overwrite what the server holds.
        payload["writSubType"] = self.writ_sub_type.value if self.writ_sub_type else None
        payload["writTypeOther"] = self.writ_type_other
        return payload


# ---------------------------------------------------------------------------
# Step 2 / edit: proceeding
# ---------------------------------------------------------------------------


class ProceedingForm(BaseModel):
    """An editable proceeding for one case."""

    model_config = ConfigDict(frozen=True)

    case_id: str
    type: ProceedingType = ProceedingType.NOTICE_OF_MOTION
    summary: str = ""
    details: str = ""
    hearing_details: HearingDetails = Field(default_factory=HearingDetails)
    entries: list[VariantEntry]
    decision_details: DecisionDetails = Field(default_factory=DecisionDetails)
    order_of_proceeding_filename: str | None = None

    @model_validator(mode="after")
    def _entries_match_type(self) -> ProceedingForm:
        if not self.entries:
            msg = "A proceeding needs at least one entry"
            raise ValueError(msg)
        expected = ENTRY_MODELS[self.type]
        for index, entry in enumerate(self.entries):
            if not isinstance(entry, expected):
                msg = f"Entry {index} is {type(entry).__name__}, expected {expected.__name__}"
                raise ValueError(msg)
        return self

    @property
    def entry_model(self) -> type[VariantEntry]:
        return ENTRY_MODELS[self.type]
