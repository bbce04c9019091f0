"""Per-session request ordering and stale-response handling.

A workflow session issues at most one request at a time. Each operation
takes a ticket (the session generation) when it starts; tearing the
session down bumps the generation, so a response that arrives afterwards
fails ``ensure_current`` and is discarded instead of being applied.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from writtrax.core.exceptions import StaleSessionError, WorkflowStateError

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


class SessionGuard:
    """In-flight lock and generation counter for one workflow instance."""

    def __init__(self, workflow: str) -> None:
        self._workflow = workflow
        self._session_id = uuid.uuid4().hex[:12]
        self._generation = 0
        self._in_flight: str | None = None

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    def is_current(self, ticket: int) -> bool:
        return ticket == self._generation

    def ensure_current(self, ticket: int) -> None:
        """Raise StaleSessionError if the session was torn down since ``ticket``."""
        if ticket != self._generation:
            raise StaleSessionError(
                "Response arrived for a closed session",
                details={"ticket": ticket, "generation": self._generation},
            )

    def teardown(self) -> None:
        """Invalidate every outstanding ticket and start a fresh session id."""
        self._generation += 1
        self._in_flight = None
        self._session_id = uuid.uuid4().hex[:12]
        logger.debug("workflow_session_reset", workflow=self._workflow, generation=self._generation)

    @contextmanager
    def operation(self, name: str) -> Iterator[int]:
        """Run one request-issuing operation; yields its ticket.

        Refuses to start while another operation is in flight. A
        StaleSessionError raised inside the block is logged and swallowed:
        the late response is dropped.
        """
        if self._in_flight is not None:
            msg = f"Cannot start {name} while {self._in_flight} is in progress"
            raise WorkflowStateError(msg, details={"in_flight": self._in_flight})

        ticket = self._generation
        self._in_flight = name
        with structlog.contextvars.bound_contextvars(
            session_id=self._session_id,
            workflow=self._workflow,
            operation=name,
        ):
            try:
                yield ticket
            except StaleSessionError:
                logger.info("stale_response_discarded")
            finally:
                if ticket == self._generation:
                    self._in_flight = None
