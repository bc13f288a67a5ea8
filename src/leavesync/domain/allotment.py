"""Approve/waitlist assignment for the requests of a single date.

Everything here is pure: the same order, limit and skip set always yield the same
assignment, so the staging preview and the commit compute identical results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from leavesync.domain.model.enums import AssignedStatus, StatedStatus

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping, Sequence


@dataclass(frozen=True, slots=True)
class PositionedRequest:
    """Computed placement of one import item on its date.

    ``position`` is the 1-based rank among non-skipped items; skipped items keep
    their slot in the display order but have no position.
    """

    original_index: int
    status: AssignedStatus
    position: int | None = None
    waitlist_position: int | None = None
    has_status_change: bool = False

    @property
    def is_approved(self) -> bool:
        return self.status == AssignedStatus.APPROVED

    @property
    def is_waitlisted(self) -> bool:
        return self.status == AssignedStatus.WAITLISTED

    @property
    def is_skipped(self) -> bool:
        return self.status == AssignedStatus.SKIPPED


def effective_limit(
    current_allotment: int,
    existing_approved: int,
    *,
    override: int | None = None,
) -> int:
    """Return the import slots left for a date after persisted approvals."""

    allotment = current_allotment if override is None else override
    return max(0, allotment - existing_approved)


def resolve_order(natural: Sequence[int], explicit: Sequence[int] | None = None) -> tuple[int, ...]:
    """Return the display order for a date.

    Without an explicit ordering the natural (original index) order is used. Entries
    of an explicit ordering that are not candidates for the date are dropped, and
    candidates it omits are appended in natural order.
    """

    if not explicit:
        return tuple(natural)
    candidates = set(natural)
    ordered: list[int] = []
    seen: set[int] = set()
    for index in explicit:
        if index in candidates and index not in seen:
            ordered.append(index)
            seen.add(index)
    ordered.extend(index for index in natural if index not in seen)
    return tuple(ordered)


def assign_positions(
    order: Sequence[int],
    *,
    limit: int,
    stated: Mapping[int, StatedStatus],
    skipped: Collection[int] = frozenset(),
    sticky_changes: Collection[int] = frozenset(),
) -> tuple[PositionedRequest, ...]:
    """Assign positions and statuses to ``order`` against ``limit`` free slots.

    Non-skipped items get sequential positions starting at 1. Positions up to the
    limit are approved, the rest are waitlisted at ``position - limit``.
    ``has_status_change`` is set when the computed status differs from the stated
    one, or when the item already appears in ``sticky_changes``.
    """

    capacity = max(0, limit)
    assigned: list[PositionedRequest] = []
    position = 0
    for index in order:
        previously_changed = index in sticky_changes
        if index in skipped:
            assigned.append(
                PositionedRequest(
                    original_index=index,
                    status=AssignedStatus.SKIPPED,
                    has_status_change=previously_changed,
                )
            )
            continue

        position += 1
        if position <= capacity:
            status = AssignedStatus.APPROVED
            waitlist_position = None
        else:
            status = AssignedStatus.WAITLISTED
            waitlist_position = position - capacity

        stated_status = stated.get(index)
        changed = stated_status is not None and stated_status.value != status.value
        assigned.append(
            PositionedRequest(
                original_index=index,
                status=status,
                position=position,
                waitlist_position=waitlist_position,
                has_status_change=changed or previously_changed,
            )
        )
    return tuple(assigned)


def changed_indices(assignment: Iterable[PositionedRequest]) -> frozenset[int]:
    return frozenset(entry.original_index for entry in assignment if entry.has_status_change)


def over_allotment_count(
    current_allotment: int, existing_approved: int, active_imports: int
) -> int:
    """Number of requests beyond the date's allotment when everyone is counted."""

    return max(0, existing_approved + active_imports - current_allotment)
