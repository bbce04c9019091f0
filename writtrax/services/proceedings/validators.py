"""Form validation for case filing and proceeding submission.

Step 1 validation cleans the case form (trimming, dropping blank rows,
clearing fields that do not apply to the writ type) and enforces the
minimum-row and writ-type-lock rules. Final proceeding validation applies
the required-field rules for a non-draft submission; drafts skip it.

Validation never dispatches a request and never mutates workflow state:
it returns a cleaned copy or raises.
"""

from __future__ import annotations

import structlog

from writtrax.core.exceptions import FormValidationError, WritTypeLockedError
from writtrax.models.domain import (
    AnyOtherDetails,
    ArgumentDetails,
    AttendanceMode,
    InvestigatingOfficer,
    NoticeOfMotionDetails,
    PersonDetails,
    ProceedingType,
    Respondent,
    WritType,
)
from writtrax.models.forms import CaseForm, ProceedingForm
from writtrax.utils.dates import blank_to_none

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

MISSING_RESPONDENT_MESSAGE = "Please provide at least one respondent with name."
MISSING_OFFICER_MESSAGE = "Please provide at least one investigating officer with name, rank, and posting."
WRIT_TYPE_LOCKED_MESSAGE = (
    "Cannot change writ type: This writ has an ARGUMENT proceeding, "
    "which requires the writ type to be QUASHING."
)
MISSING_FIELDS_MESSAGE = "Please fill in all required fields."


def _filled(value: str | None) -> bool:
    return bool(value and value.strip())


# ---------------------------------------------------------------------------
# Step 1
# ---------------------------------------------------------------------------


def _clean_officer(officer: InvestigatingOfficer) -> InvestigatingOfficer:
    return InvestigatingOfficer(
        name=officer.name.strip(),
        rank=officer.rank.strip(),
        posting=officer.posting.strip(),
        contact=officer.contact or 0,
        from_=blank_to_none(officer.from_),
        to=blank_to_none(officer.to),
    )


def validate_case_form(
    form: CaseForm,
    *,
    edit_mode: bool = False,
    has_argument_proceeding: bool = False,
) -> CaseForm:
    """Validate a Step 1 form and return the cleaned copy to persist.

    Raises:
        WritTypeLockedError: editing a case that has a filed ARGUMENT
            proceeding while leaving QUASHING.
        FormValidationError: no respondent with a name, or no officer with
            name, rank, and posting.
    """
    if edit_mode and has_argument_proceeding and form.writ_type != WritType.QUASHING:
        logger.info("writ_type_lock_rejected", writ_type=form.writ_type)
        raise WritTypeLockedError(WRIT_TYPE_LOCKED_MESSAGE, field="writ_type")

    respondents = [
        Respondent(name=r.name.strip(), designation=blank_to_none(r.designation))
        for r in form.respondents
        if _filled(r.name)
    ]
    if not respondents:
        raise FormValidationError(MISSING_RESPONDENT_MESSAGE, field="respondents")

    officers = [
        _clean_officer(o)
        for o in form.investigating_officers
        if _filled(o.name) and _filled(o.rank) and _filled(o.posting)
    ]
    if not officers:
        raise FormValidationError(MISSING_OFFICER_MESSAGE, field="investigating_officers")

    under_section = form.under_section.strip()
    sections = [s.strip() for s in form.sections if _filled(s)]
    if not sections and under_section:
        sections = [under_section]

    is_bail = form.writ_type == WritType.BAIL
    is_other = form.writ_type == WritType.ANY_OTHER
    return form.model_copy(
        update={
            "fir_number": form.fir_number.strip(),
            "branch_name": form.branch_name.strip(),
            "writ_number": form.writ_number.strip(),
            "writ_sub_type": form.writ_sub_type if is_bail else None,
            "writ_type_other": blank_to_none(form.writ_type_other) if is_other else None,
            "under_section": under_section,
            "act": form.act.strip(),
            "police_station": form.police_station.strip(),
            "sections": sections,
            "investigating_officers": officers,
            "respondents": respondents,
            "petitioner_name": form.petitioner_name.strip(),
            "petitioner_father_name": form.petitioner_father_name.strip(),
            "petitioner_address": form.petitioner_address.strip(),
            "petitioner_prayer": form.petitioner_prayer.strip(),
        },
    )


# ---------------------------------------------------------------------------
# Final (non-draft) proceeding submission
# ---------------------------------------------------------------------------


def _person_violations(person: PersonDetails | None, label: str) -> list[str]:
    person = person or PersonDetails()
    return [
        f"{label} {part} is required"
        for part, value in (("name", person.name), ("rank", person.rank), ("mobile", person.mobile))
        if not _filled(value)
    ]


def _notice_violations(entry: NoticeOfMotionDetails) -> list[str]:
    violations: list[str] = []
    if entry.attendance_mode == AttendanceMode.BY_FORMAT:
        violations += _person_violations(entry.format_filled_by, "Format filled by")
        if not _filled(entry.aag_dg_who_will_appear):
            violations.append("AAG/DG who will appear is required")
    else:
        if not _filled(entry.attending_officer_details):
            violations.append("Attending officer is required")
        violations += _person_violations(entry.investigating_officer, "Investigating officer")
        if not _filled(entry.appearing_ag_details):
            violations.append("Appearing AG is required")
    if not _filled(entry.details):
        violations.append("Details of proceeding is required")
    return violations


def _reply_violations(entry: NoticeOfMotionDetails) -> list[str]:
    required = (
        ("Officer deputed for reply", entry.officer_deputed_for_reply),
        ("Advocate general name", entry.advocate_general_name),
        ("Vetting officer", entry.vetting_officer_details),
        ("Investigating officer name", entry.investigating_officer_name),
        ("Proceeding in court", entry.proceeding_in_court),
        ("Order in short", entry.order_in_short),
        ("Next actionable point", entry.next_actionable_point),
        ("Next date of hearing", entry.next_date_of_hearing_reply),
    )
    violations = [f"{label} is required" for label, value in required if not _filled(value)]
    # The filing date is gated by the replyFiled flag.
    if entry.reply_filed and not _filled(entry.reply_filing_date):
        violations.append("Reply filing date is required")
    return violations


def _argument_violations(entry: ArgumentDetails) -> list[str]:
    required = (
        ("Argument by", entry.argument_by),
        ("Argument with", entry.argument_with),
        ("Next date of hearing", entry.next_date_of_hearing),
    )
    return [f"{label} is required" for label, value in required if not _filled(value)]


def _any_other_violations(entry: AnyOtherDetails) -> list[str]:
    violations: list[str] = []
    if not _filled(entry.attending_officer_details):
        violations.append("Attending officer is required")
    violations += _person_violations(entry.officer_details, "Officer")
    if not _filled(entry.appearing_ag_details):
        violations.append("Appearing AG is required")
    if not _filled(entry.details):
        violations.append("Details of proceeding is required")
    return violations


def proceeding_violations(form: ProceedingForm) -> list[str]:
    """Every required-field violation of a non-draft proceeding."""
    violations: list[str] = []
    hearing = form.hearing_details
    if not _filled(hearing.date_of_hearing):
        violations.append("Hearing date is required")
    if not _filled(hearing.judge_name):
        violations.append("Judge name is required")
    if not _filled(hearing.court_number):
        violations.append("Court number is required")
    if form.decision_details.writ_status is None:
        violations.append("Writ status is required")

    for index, entry in enumerate(form.entries):
        if form.type == ProceedingType.TO_FILE_REPLY and isinstance(entry, NoticeOfMotionDetails):
            entry_violations = _reply_violations(entry)
        elif isinstance(entry, NoticeOfMotionDetails):
            entry_violations = _notice_violations(entry)
        elif isinstance(entry, ArgumentDetails):
            entry_violations = _argument_violations(entry)
        else:
            entry_violations = _any_other_violations(entry)
        violations += [f"Entry {index + 1}: {v}" for v in entry_violations]
    return violations


def validate_final_proceeding(form: ProceedingForm) -> None:
    """Raise FormValidationError listing every violation, if any."""
    violations = proceeding_violations(form)
    if violations:
        logger.info("proceeding_validation_failed", violations=len(violations), proceeding_type=form.type)
        raise FormValidationError(
            violations[0] if len(violations) == 1 else MISSING_FIELDS_MESSAGE,
            violations=violations,
        )
