"""Classification and resolution of import items that disagree with stored rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from leavesync.domain.model import (
    ConflictAction,
    ConflictKind,
    ConflictSeverity,
    LeaveType,
    RequestStatus,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from leavesync.domain.allotment import PositionedRequest
    from leavesync.domain.model import LeaveRequest


@dataclass(frozen=True, slots=True, kw_only=True)
class DbConflict:
    conflict_id: str
    kind: ConflictKind
    severity: ConflictSeverity
    original_index: int
    member_id: UUID
    request_date: date
    leave_type: LeaveType
    persisted_request_id: UUID
    persisted_status: RequestStatus
    persisted_waitlist_position: int | None
    import_status: RequestStatus
    import_waitlist_position: int | None
    description: str


@dataclass(frozen=True, slots=True)
class ConflictResolution:
    action: ConflictAction
    reason: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class QueuedWrite:
    """A stored request the commit will overwrite because of a resolution."""

    conflict_id: str
    request_id: UUID
    request_date: date
    from_status: RequestStatus
    to_status: RequestStatus
    waitlist_position: int | None
    reason: str | None = None


@dataclass(kw_only=True)
class DbReconciliationStageData:
    """Detected conflicts and their resolutions.

    ``matched_requests`` records, for every active item, the stored request sharing
    its (member, date, leave type) key, conflicting or not. Such items update the
    stored row instead of inserting a new one.
    """

    conflicts: list[DbConflict] = field(default_factory=list)
    resolutions: dict[str, ConflictResolution] = field(default_factory=dict)
    matched_requests: dict[int, UUID] = field(default_factory=dict)

    def clear_resolutions(self) -> None:
        self.resolutions.clear()

    def conflict(self, conflict_id: str) -> DbConflict | None:
        for conflict in self.conflicts:
            if conflict.conflict_id == conflict_id:
                return conflict
        return None


def conflict_id_for(original_index: int) -> str:
    return f"item-{original_index}"


def classify(
    original_index: int,
    persisted: LeaveRequest | None,
    implied: PositionedRequest,
    *,
    waitlist_base: int = 0,
) -> DbConflict | None:
    """Compare a stored request with the status the import implies for it.

    Imported waitlist ranks are placed after the ``waitlist_base`` rows already
    waitlisted on the date, as the commit writes them.
    """

    if persisted is None or implied.is_skipped:
        return None

    import_status = RequestStatus(implied.status.value)
    import_position = (
        waitlist_base + implied.waitlist_position
        if implied.waitlist_position is not None
        else None
    )
    if persisted.status != import_status:
        either_approved = RequestStatus.APPROVED in {persisted.status, import_status}
        kind = ConflictKind.STATUS
        severity = ConflictSeverity.HIGH if either_approved else ConflictSeverity.MEDIUM
        description = (
            f"Stored request is {persisted.status.value}, import implies {import_status.value}"
        )
    elif persisted.is_waitlisted and persisted.waitlist_position != import_position:
        kind = ConflictKind.ORDERING
        severity = ConflictSeverity.LOW
        description = (
            f"Stored waitlist position {persisted.waitlist_position}, "
            f"import implies {import_position}"
        )
    else:
        return None

    return DbConflict(
        conflict_id=conflict_id_for(original_index),
        kind=kind,
        severity=severity,
        original_index=original_index,
        member_id=persisted.member_id,
        request_date=persisted.request_date,
        leave_type=persisted.leave_type,
        persisted_request_id=persisted.id,
        persisted_status=persisted.status,
        persisted_waitlist_position=persisted.waitlist_position,
        import_status=import_status,
        import_waitlist_position=import_position,
        description=description,
    )


def resolve(
    data: DbReconciliationStageData,
    conflict_id: str,
    action: ConflictAction,
    reason: str | None = None,
) -> None:
    data.resolutions[conflict_id] = ConflictResolution(action=action, reason=reason)


def unresolved(data: DbReconciliationStageData) -> tuple[DbConflict, ...]:
    return tuple(c for c in data.conflicts if c.conflict_id not in data.resolutions)


def is_complete(data: DbReconciliationStageData) -> bool:
    return not unresolved(data)


def merge_conflicts(
    data: DbReconciliationStageData,
    conflicts: Iterable[DbConflict],
    matched_requests: dict[int, UUID],
) -> None:
    """Replace detected conflicts, keeping resolutions for unchanged conflicts."""

    previous = {c.conflict_id: c for c in data.conflicts}
    data.conflicts = list(conflicts)
    data.matched_requests = dict(matched_requests)
    kept: dict[str, ConflictResolution] = {}
    for conflict in data.conflicts:
        resolution = data.resolutions.get(conflict.conflict_id)
        if resolution is not None and previous.get(conflict.conflict_id) == conflict:
            kept[conflict.conflict_id] = resolution
    data.resolutions = kept


def queued_writes(data: DbReconciliationStageData) -> tuple[QueuedWrite, ...]:
    writes: list[QueuedWrite] = []
    for conflict in data.conflicts:
        resolution = data.resolutions.get(conflict.conflict_id)
        if resolution is None or resolution.action.target_status is None:
            continue
        target = resolution.action.target_status
        position: int | None = None
        if target == RequestStatus.WAITLISTED:
            position = conflict.import_waitlist_position or conflict.persisted_waitlist_position
        writes.append(
            QueuedWrite(
                conflict_id=conflict.conflict_id,
                request_id=conflict.persisted_request_id,
                request_date=conflict.request_date,
                from_status=conflict.persisted_status,
                to_status=target,
                waitlist_position=position,
                reason=resolution.reason,
            )
        )
    return tuple(writes)
