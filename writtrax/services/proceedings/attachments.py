"""Attachment ledger for an editable proceeding.

Tracks, per editable entry index, at most one newly selected file waiting
to be uploaded, plus the single decision-details and order-of-proceeding
slots. Independently, it accumulates the filenames of already-persisted
attachments that the next save must delete. ``build_save_instructions``
turns that state into the minimal upload/delete set for one request.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from writtrax.core.exceptions import AttachmentRejectedError
from writtrax.models.domain import VARIANT_CHANNELS, AttachmentChannel, Proceeding, ProceedingType

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

ALLOWED_CONTENT_TYPES: frozenset[str] = frozenset(
    {
        "application/pdf",
        "image/png",
        "image/jpeg",
        "image/jpg",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel",
    }
)

INVALID_FILE_TYPE_MESSAGE = "Invalid file type. Only PDF, PNG, JPEG, JPG, and Excel files are allowed."

DECISION_FILE_FIELD = "attachments_decisionDetails"
ORDER_FILE_FIELD = "orderOfProceeding"

MultipartFile = tuple[str, tuple[str, bytes, str]]


@dataclass(frozen=True)
class PendingFile:
    """A file selected by the user but not yet uploaded."""

    filename: str
    content_type: str
    content: bytes = b""


@dataclass(frozen=True)
class SaveInstructions:
    """Files to upload and persisted filenames to delete on the next save."""

    channel: AttachmentChannel
    entry_files: dict[int, PendingFile] = field(default_factory=dict)
    decision_file: PendingFile | None = None
    order_file: PendingFile | None = None
    files_to_delete: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.entry_files or self.decision_file or self.order_file or self.files_to_delete)

    def multipart_files(self) -> list[MultipartFile]:
        """File parts in httpx ``files=`` form, ordered by entry index."""
        parts: list[MultipartFile] = [
            (
                f"attachments_{self.channel.value}_{index}",
                (pending.filename, pending.content, pending.content_type),
            )
            for index, pending in sorted(self.entry_files.items())
        ]
        if self.decision_file is not None:
            f = self.decision_file
            parts.append((DECISION_FILE_FIELD, (f.filename, f.content, f.content_type)))
        if self.order_file is not None:
            f = self.order_file
            parts.append((ORDER_FILE_FIELD, (f.filename, f.content, f.content_type)))
        return parts


def check_content_type(file: PendingFile) -> None:
    """Raise AttachmentRejectedError unless ``file`` has an allowed content type."""
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise AttachmentRejectedError(
            INVALID_FILE_TYPE_MESSAGE,
            field="attachment",
            details={"filename": file.filename, "content_type": file.content_type},
        )


def collect_persisted_attachments(proceeding: Proceeding) -> list[str]:
    """Every stored filename a type change would orphan.

    The entries of the proceeding's current type, then the decision-details
    attachment, then the order-of-proceeding file.
    """
    filenames = [entry.attachment for entry in proceeding.persisted_entries() if entry.attachment]
    if proceeding.decision_details and proceeding.decision_details.attachment:
        filenames.append(proceeding.decision_details.attachment)
    if proceeding.order_of_proceeding_filename:
        filenames.append(proceeding.order_of_proceeding_filename)
    return filenames


class AttachmentLedger:
    """Pending uploads and pending deletions for one editing session."""

    def __init__(self, channel: AttachmentChannel = AttachmentChannel.NOTICE_OF_MOTION) -> None:
        self._channel = channel
        self._pending: dict[int, PendingFile] = {}
        self._decision: PendingFile | None = None
        self._order: PendingFile | None = None
        self._to_delete: list[str] = []

    @classmethod
    def for_type(cls, proceeding_type: ProceedingType) -> AttachmentLedger:
        return cls(VARIANT_CHANNELS[proceeding_type])

    @property
    def channel(self) -> AttachmentChannel:
        return self._channel

    @property
    def pending(self) -> dict[int, PendingFile]:
        return dict(self._pending)

    @property
    def decision_file(self) -> PendingFile | None:
        return self._decision

    @property
    def order_file(self) -> PendingFile | None:
        return self._order

    @property
    def files_to_delete(self) -> list[str]:
        return list(self._to_delete)

    # --- Entry slots ---

    def attach(self, index: int, file: PendingFile) -> None:
        """Record ``file`` for entry ``index``, replacing any earlier selection.

        Raises:
            AttachmentRejectedError: if the content type is not allowed. The
                ledger is left unchanged.
        """
        if index < 0:
            msg = f"Entry index must be non-negative, got {index}"
            raise ValueError(msg)
        check_content_type(file)
        self._pending[index] = file
        logger.debug("attachment_selected", index=index, filename=file.filename, channel=self._channel)

    def detach(self, index: int) -> None:
        """Drop the pending file at ``index``. Deletion marks are untouched."""
        self._pending.pop(index, None)

    def reindex_on_remove(self, removed_index: int) -> None:
        """Follow an entry removal: discard its file and shift later files down by one."""
        shifted: dict[int, PendingFile] = {}
        for index, pending in self._pending.items():
            if index < removed_index:
                shifted[index] = pending
            elif index > removed_index:
                shifted[index - 1] = pending
        self._pending = shifted

    # --- Single slots ---

    def attach_decision(self, file: PendingFile) -> None:
        check_content_type(file)
        self._decision = file

    def detach_decision(self) -> None:
        self._decision = None

    def attach_order(self, file: PendingFile) -> None:
        check_content_type(file)
        self._order = file

    def detach_order(self) -> None:
        self._order = None

    # --- Deletions ---

    def mark_existing_for_deletion(self, filename: str) -> None:
        """Queue a persisted file for deletion. Idempotent."""
        if filename and filename not in self._to_delete:
            self._to_delete.append(filename)

    def retarget(self, channel: AttachmentChannel) -> None:
        """Change the upload channel, keeping pending selections by index."""
        self._channel = channel

    def switch_channel(self, channel: AttachmentChannel, discarded: Iterable[str]) -> None:
        """Destructive reset for a proceeding type change.

        Every pending selection is dropped (entry, decision, and order slots)
        and ``discarded`` filenames join the deletion set.
        """
        self._channel = channel
        self._pending.clear()
        self._decision = None
        self._order = None
        for filename in discarded:
            self.mark_existing_for_deletion(filename)
        logger.info("attachment_channel_switched", channel=channel, files_to_delete=len(self._to_delete))

    def build_save_instructions(self) -> SaveInstructions:
        return SaveInstructions(
            channel=self._channel,
            entry_files=dict(self._pending),
            decision_file=self._decision,
            order_file=self._order,
            files_to_delete=list(self._to_delete),
        )
