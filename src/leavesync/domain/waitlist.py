"""Waitlist position validation and renumbering for one calendar date."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import UUID

from leavesync.domain.model import AuditEntry, LeaveRequest

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from datetime import date

    from leavesync.domain.ports import ReconciliationRepositories, UnitOfWorkFactory

log = getLogger(__name__)

type WaitlistItemId = int | UUID


@dataclass(frozen=True, slots=True)
class ProposedPosition:
    item_id: WaitlistItemId
    position: int


@dataclass(frozen=True, slots=True)
class PersistedPosition:
    request_id: UUID
    position: int


@dataclass(frozen=True, slots=True)
class PositionConflict:
    """A proposed and a persisted entry claiming the same waitlist position."""

    position: int
    item_id: WaitlistItemId
    request_id: UUID


@dataclass(frozen=True, slots=True)
class WaitlistValidation:
    conflicts: tuple[PositionConflict, ...] = ()
    gaps: tuple[int, ...] = ()
    suggestions: tuple[ProposedPosition, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.conflicts and not self.gaps


@dataclass(frozen=True, slots=True)
class Renumbering:
    request_id: UUID
    old_position: int | None
    new_position: int


@dataclass(frozen=True, slots=True)
class WaitlistResetResult:
    calendar_id: str
    request_date: date
    updated_count: int


def validate_positions(
    proposed: Sequence[ProposedPosition],
    persisted: Sequence[PersistedPosition],
) -> WaitlistValidation:
    """Check ``proposed`` positions against the persisted waitlist of the same date.

    Gaps are reported over the union of both sets. When anything is wrong the
    suggestions place every proposed entry after the highest persisted position,
    keeping the proposed order.
    """

    persisted_by_position: dict[int, UUID] = {}
    for entry in persisted:
        persisted_by_position.setdefault(entry.position, entry.request_id)

    conflicts = tuple(
        PositionConflict(
            position=entry.position,
            item_id=entry.item_id,
            request_id=persisted_by_position[entry.position],
        )
        for entry in proposed
        if entry.position in persisted_by_position
    )

    taken = {entry.position for entry in proposed} | set(persisted_by_position)
    highest = max(taken, default=0)
    gaps = tuple(position for position in range(1, highest + 1) if position not in taken)

    if not conflicts and not gaps:
        return WaitlistValidation()

    base = max(persisted_by_position, default=0)
    suggestions = tuple(
        ProposedPosition(item_id=entry.item_id, position=base + offset)
        for offset, entry in enumerate(proposed, start=1)
    )
    return WaitlistValidation(conflicts=conflicts, gaps=gaps, suggestions=suggestions)


def _position_key(row: LeaveRequest) -> tuple[bool, int, str]:
    position = row.waitlist_position
    return (position is None, position or 0, str(row.id))


def _requested_key(row: LeaveRequest) -> tuple[bool, float, str]:
    requested_at = row.requested_at
    stamp = requested_at.timestamp() if requested_at is not None else 0.0
    return (requested_at is None, stamp, str(row.id))


def renumber_waitlist(
    rows: Iterable[LeaveRequest], *, preserve_order: bool = True
) -> tuple[Renumbering, ...]:
    """Return the changes that make the waitlisted ``rows`` contiguous from 1.

    With ``preserve_order`` the current relative order is kept, otherwise rows are
    ranked by when they were requested. Rows already in place are not reported.
    """

    key: Callable[[LeaveRequest], tuple[bool, float, str]] = (
        _position_key if preserve_order else _requested_key
    )
    waitlisted = sorted((row for row in rows if row.is_waitlisted), key=key)
    return tuple(
        Renumbering(request_id=row.id, old_position=row.waitlist_position, new_position=rank)
        for rank, row in enumerate(waitlisted, start=1)
        if row.waitlist_position != rank
    )


def apply_renumbering(
    repositories: ReconciliationRepositories,
    calendar_id: str,
    request_date: date,
    *,
    actor: str,
    at: datetime,
    preserve_order: bool = True,
    session_id: UUID | None = None,
) -> int:
    """Renumber a date's persisted waitlist in place and audit every moved row.

    The caller must already hold the date lock in the same unit of work.
    """

    rows = repositories.leave_requests.list_for_date(calendar_id, request_date)
    by_id = {row.id: row for row in rows}
    changes = renumber_waitlist(rows, preserve_order=preserve_order)
    for change in changes:
        row = by_id[change.request_id]
        before = row.snapshot()
        row.move_to_position(change.new_position, actor=actor, at=at)
        repositories.audit.add(
            AuditEntry.for_record(
                row,
                before=before,
                actor=actor,
                at=at,
                session_id=session_id,
                reason="waitlist renumbered",
            )
        )
    return len(changes)


class WaitlistService:
    """Store-backed validate/reset, serialized per (calendar, date)."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def validate(
        self,
        calendar_id: str,
        request_date: date,
        proposed: Sequence[ProposedPosition],
    ) -> WaitlistValidation:
        with self._uow_factory() as uow:
            repositories = uow.repositories
            repositories.date_locks.acquire(calendar_id, request_date)
            persisted = [
                PersistedPosition(request_id=row.id, position=row.waitlist_position)
                for row in repositories.leave_requests.list_for_date(calendar_id, request_date)
                if row.is_waitlisted and row.waitlist_position is not None
            ]
            result = validate_positions(proposed, persisted)
            # read-only: release the lock without bumping its version
            uow.rollback()
        return result

    def reset(
        self,
        calendar_id: str,
        request_date: date,
        *,
        actor: str,
        preserve_order: bool = True,
    ) -> WaitlistResetResult:
        with self._uow_factory() as uow:
            repositories = uow.repositories
            repositories.date_locks.acquire(calendar_id, request_date)
            updated = apply_renumbering(
                repositories,
                calendar_id,
                request_date,
                actor=actor,
                at=self._clock(),
                preserve_order=preserve_order,
            )
            uow.commit()
        log.info(
            "Reset waitlist for %s on %s: %d row(s) renumbered", calendar_id, request_date, updated
        )
        return WaitlistResetResult(
            calendar_id=calendar_id, request_date=request_date, updated_count=updated
        )
