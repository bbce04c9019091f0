"""Tests for the attachment ledger: selection, reindexing, deletions, channels."""

from __future__ import annotations

import pytest

from tests.conftest import make_proceeding
from writtrax.core.exceptions import AttachmentRejectedError
from writtrax.models.domain import AttachmentChannel, ProceedingType
from writtrax.services.proceedings.attachments import (
    DECISION_FILE_FIELD,
    INVALID_FILE_TYPE_MESSAGE,
    ORDER_FILE_FIELD,
    AttachmentLedger,
    PendingFile,
    SaveInstructions,
    collect_persisted_attachments,
)


def _pdf(name: str) -> PendingFile:
    return PendingFile(filename=name, content_type="application/pdf", content=b"%PDF")


@pytest.fixture
def ledger() -> AttachmentLedger:
    return AttachmentLedger.for_type(ProceedingType.NOTICE_OF_MOTION)


class TestSelection:
    def test_attach_replaces_earlier_selection(self, ledger: AttachmentLedger) -> None:
        ledger.attach(0, _pdf("a.pdf"))
        ledger.attach(0, _pdf("b.pdf"))
        assert ledger.pending == {0: _pdf("b.pdf")}

    def test_rejected_content_type_leaves_ledger_unchanged(self, ledger: AttachmentLedger) -> None:
        ledger.attach(0, _pdf("a.pdf"))
        with pytest.raises(AttachmentRejectedError) as exc_info:
            ledger.attach(0, PendingFile(filename="notes.txt", content_type="text/plain"))

        assert exc_info.value.message == INVALID_FILE_TYPE_MESSAGE
        assert ledger.pending == {0: _pdf("a.pdf")}

    @pytest.mark.parametrize(
        "content_type",
        [
            "application/pdf",
            "image/png",
            "image/jpeg",
            "image/jpg",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            "application/vnd.ms-excel",
        ],
    )
    def test_allowed_content_types(self, ledger: AttachmentLedger, content_type: str) -> None:
        ledger.attach(1, PendingFile(filename="f", content_type=content_type))
        assert 1 in ledger.pending

    def test_negative_index_rejected(self, ledger: AttachmentLedger) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            ledger.attach(-1, _pdf("a.pdf"))

    def test_detach_missing_slot_is_noop(self, ledger: AttachmentLedger) -> None:
        ledger.detach(3)
        assert ledger.pending == {}

    def test_rejected_decision_file(self, ledger: AttachmentLedger) -> None:
        with pytest.raises(AttachmentRejectedError):
            ledger.attach_decision(PendingFile(filename="x.exe", content_type="application/octet-stream"))
        assert ledger.decision_file is None


class TestReindex:
    def test_remove_middle_entry_shifts_later_files(self, ledger: AttachmentLedger) -> None:
        ledger.attach(0, _pdf("f0.pdf"))
        ledger.attach(1, _pdf("f1.pdf"))
        ledger.attach(2, _pdf("f2.pdf"))

        ledger.reindex_on_remove(1)

        assert ledger.pending == {0: _pdf("f0.pdf"), 1: _pdf("f2.pdf")}

    def test_remove_entry_without_file(self, ledger: AttachmentLedger) -> None:
        ledger.attach(0, _pdf("f0.pdf"))
        ledger.attach(3, _pdf("f3.pdf"))

        ledger.reindex_on_remove(1)

        assert ledger.pending == {0: _pdf("f0.pdf"), 2: _pdf("f3.pdf")}


class TestDeletions:
    def test_mark_is_idempotent(self, ledger: AttachmentLedger) -> None:
        ledger.mark_existing_for_deletion("old.pdf")
        ledger.mark_existing_for_deletion("old.pdf")
        assert ledger.files_to_delete == ["old.pdf"]

    def test_switch_channel_drops_pending_and_queues_discarded(self, ledger: AttachmentLedger) -> None:
        ledger.attach(0, _pdf("new.pdf"))
        ledger.attach_decision(_pdf("decision.pdf"))
        ledger.attach_order(_pdf("order.pdf"))
        ledger.mark_existing_for_deletion("removed.pdf")

        ledger.switch_channel(AttachmentChannel.ARGUMENT_DETAILS, ["a.pdf", "removed.pdf"])

        assert ledger.channel == AttachmentChannel.ARGUMENT_DETAILS
        assert ledger.pending == {}
        assert ledger.decision_file is None
        assert ledger.order_file is None
        assert ledger.files_to_delete == ["removed.pdf", "a.pdf"]

    def test_retarget_keeps_pending(self, ledger: AttachmentLedger) -> None:
        ledger.attach(0, _pdf("a.pdf"))
        ledger.retarget(AttachmentChannel.REPLY_TRACKING)
        assert ledger.channel == AttachmentChannel.REPLY_TRACKING
        assert ledger.pending == {0: _pdf("a.pdf")}


class TestSaveInstructions:
    def test_multipart_field_names(self, ledger: AttachmentLedger) -> None:
        ledger.attach(2, _pdf("f2.pdf"))
        ledger.attach(0, _pdf("f0.pdf"))
        ledger.attach_decision(_pdf("d.pdf"))
        ledger.attach_order(_pdf("o.pdf"))

        parts = ledger.build_save_instructions().multipart_files()

        assert [name for name, _ in parts] == [
            "attachments_noticeOfMotion_0",
            "attachments_noticeOfMotion_2",
            DECISION_FILE_FIELD,
            ORDER_FILE_FIELD,
        ]
        assert parts[0][1] == ("f0.pdf", b"%PDF", "application/pdf")

    def test_empty_instructions(self, ledger: AttachmentLedger) -> None:
        instructions = ledger.build_save_instructions()
        assert instructions.is_empty
        assert instructions.multipart_files() == []

    def test_instructions_are_a_snapshot(self, ledger: AttachmentLedger) -> None:
        instructions = ledger.build_save_instructions()
        ledger.attach(0, _pdf("late.pdf"))
        assert instructions == SaveInstructions(channel=AttachmentChannel.NOTICE_OF_MOTION)


class TestCollectPersisted:
    def test_collects_entries_decision_and_order(self) -> None:
        proceeding = make_proceeding(
            noticeOfMotion=[{"details": "a", "attachment": "a.pdf"}, {"details": "b"}],
            decisionDetails={"writStatus": "PENDING", "attachment": "d.pdf"},
            orderOfProceedingFilename="order.pdf",
        )
        assert collect_persisted_attachments(proceeding) == ["a.pdf", "d.pdf", "order.pdf"]

    def test_nothing_persisted(self) -> None:
        assert collect_persisted_attachments(make_proceeding()) == []
