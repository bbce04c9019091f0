"""Shared test fixtures and factory functions.

Factories return valid wire payloads or domain objects with sensible
defaults. Override any field via keyword arguments to create specific
test scenarios without repeating boilerplate.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from unittest.mock import AsyncMock

import pytest

from writtrax.core.config import Settings
from writtrax.models.domain import CaseRecord, Proceeding
from writtrax.services.client.records import CaseRecords

# ---------------------------------------------------------------------------
# Settings / clock
# ---------------------------------------------------------------------------

TODAY = date(2024, 6, 15)


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing: console logs, token preset."""
    return Settings(
        api_base_url="http://records.test/api/",
        api_token="test-token",
        cache_ttl_seconds=300.0,
        log_format="console",
        log_level="DEBUG",
    )


class FakeClock:
    """Controllable monotonic clock for cache TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def records() -> AsyncMock:
    """CaseRecords double; configure return values per test."""
    return AsyncMock(spec=CaseRecords)


# ---------------------------------------------------------------------------
# Wire payload factories
# ---------------------------------------------------------------------------


def make_case_payload(**overrides: Any) -> dict[str, Any]:
    """Build a case record as the service returns it."""
    defaults: dict[str, Any] = {
        "_id": "case-1",
        "firNumber": "FIR-101/2024",
        "title": "State v. Kumar",
        "dateOfFIR": "2024-03-05T00:00:00.000Z",
        "branchName": "Central",
        "writNumber": "WP-1234",
        "writType": "BAIL",
        "writYear": 2024,
        "writSubType": "REGULAR",
        "underSection": "302",
        "act": "IPC",
        "policeStation": "Kotwali",
        "sections": ["302"],
        "investigatingOfficers": [
            {"name": "R. Singh", "rank": "SI", "posting": "Kotwali", "contact": 9876543210},
        ],
        "petitionerName": "A. Kumar",
        "petitionerFatherName": "B. Kumar",
        "petitionerAddress": "12 Mall Road",
        "petitionerPrayer": "Grant bail",
        "respondents": [{"name": "State", "designation": "SHO"}],
        "status": "PENDING",
    }
    defaults.update(overrides)
    return defaults


def make_notice_entry(**overrides: Any) -> dict[str, Any]:
    """A complete BY_FORMAT notice-of-motion entry, wire shaped."""
    defaults: dict[str, Any] = {
        "attendanceMode": "BY_FORMAT",
        "formatSubmitted": True,
        "formatFilledBy": {"name": "Insp. Rao", "rank": "Inspector", "mobile": "9000000001"},
        "aagDgWhoWillAppear": "AAG Sharma",
        "investigatingOfficer": {"name": "R. Singh", "rank": "SI", "mobile": "9000000002"},
        "details": "Notice issued to the State",
        "nextDateOfHearing": "2024-07-01T00:00:00.000Z",
    }
    defaults.update(overrides)
    return defaults


def make_reply_entry(**overrides: Any) -> dict[str, Any]:
    defaults: dict[str, Any] = {
        "officerDeputedForReply": "DSP Verma",
        "vettingOfficerDetails": "SP Legal",
        "replyFiled": True,
        "replyFilingDate": "2024-06-20T00:00:00.000Z",
        "advocateGeneralName": "AG Mehta",
        "replyScrutinizedByHC": False,
        "investigatingOfficerName": "R. Singh",
        "proceedingInCourt": "Reply taken on record",
        "orderInShort": "Listed for arguments",
        "nextActionablePoint": "Prepare arguments",
        "nextDateOfHearingReply": "2024-07-15T00:00:00.000Z",
    }
    defaults.update(overrides)
    return defaults


def make_argument_entry(**overrides: Any) -> dict[str, Any]:
    defaults: dict[str, Any] = {
        "argumentBy": "AAG Sharma",
        "argumentWith": "Counsel for petitioner",
        "nextDateOfHearing": "2024-08-01",
    }
    defaults.update(overrides)
    return defaults


def make_proceeding_payload(**overrides: Any) -> dict[str, Any]:
    """Build a completed NOTICE_OF_MOTION proceeding as the service returns it."""
    defaults: dict[str, Any] = {
        "_id": "proc-1",
        "fir": "case-1",
        "sequence": 1,
        "type": "NOTICE_OF_MOTION",
        "hearingDetails": {
            "dateOfHearing": "2024-06-10T00:00:00.000Z",
            "judgeName": "Justice Iyer",
            "courtNumber": "12",
        },
        "noticeOfMotion": make_notice_entry(),
        "decisionDetails": {"writStatus": "PENDING"},
        "draft": False,
    }
    defaults.update(overrides)
    return defaults


# ---------------------------------------------------------------------------
# Domain model factories
# ---------------------------------------------------------------------------


def make_case(**overrides: Any) -> CaseRecord:
    """Build a valid CaseRecord from wire-keyed overrides."""
    return CaseRecord.model_validate(make_case_payload(**overrides))


def make_proceeding(**overrides: Any) -> Proceeding:
    """Build a valid Proceeding from wire-keyed overrides."""
    return Proceeding.model_validate(make_proceeding_payload(**overrides))
