"""Error types raised by the reconciliation engine.

Business conditions (over-allotment, duplicates, store conflicts) are states on the
session, never exceptions. Exceptions cover rejected operations and store I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from leavesync.domain.model.enums import ImportStage


class ReconciliationError(Exception):
    """Base class for engine errors."""


@dataclass(frozen=True, slots=True)
class BlockingReason:
    """Why a transition or commit cannot proceed, detailed enough to render."""

    stage: ImportStage
    category: str
    message: str
    item_indices: tuple[int, ...] = field(default=())


class StageValidationError(ReconciliationError):
    """A transition or mutation violates a stage invariant."""

    def __init__(self, message: str, reasons: Sequence[BlockingReason] = ()) -> None:
        self.reasons = tuple(reasons)
        details = "; ".join(reason.message for reason in self.reasons)
        super().__init__(f"{message}: {details}" if details else message)


class InvalidTransitionError(StageValidationError):
    """Requested stage transition is not allowed from the current stage."""


class StageMismatchError(StageValidationError):
    """A stage mutation was attempted while another stage is current."""


class SessionCommittedError(ReconciliationError):
    """The session was committed and can no longer change."""


class RollbackNotConfirmedError(ReconciliationError):
    """Rollback was attempted without the caller confirming the discard plan."""


class StaleRollbackPlanError(ReconciliationError):
    """The session changed after the rollback plan was computed."""


class UnknownItemError(ReconciliationError, KeyError):
    """An operation referenced an original index the session does not hold."""


class StoreError(ReconciliationError):
    """The operational store failed or is unreachable. Safe to retry."""


class ConcurrentModificationError(StoreError):
    """Persisted state for a date changed since it was staged."""

    def __init__(self, calendar_id: str, dates: Sequence[object]) -> None:
        self.calendar_id = calendar_id
        self.dates = tuple(dates)
        joined = ", ".join(str(value) for value in self.dates)
        super().__init__(f"Store changed for calendar {calendar_id} on {joined} since staging")


class SessionNotFoundError(ReconciliationError, LookupError):
    """No staged session exists for the given id."""

    def __init__(self, session_id: UUID) -> None:
        self.session_id = session_id
        super().__init__(f"No staged session {session_id}")
