"""Decisions for import items that already exist in the operational store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from leavesync.domain.model import DuplicateDecision

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from leavesync.domain.model import ImportItem, LeaveRequest, MemberRef


@dataclass(kw_only=True)
class DuplicateStageData:
    """Flagged duplicates and the operator decision for each.

    ``duplicate_items`` maps an original index to the persisted request ids it
    collides with. An empty tuple marks a repeat of an earlier item in the same
    import.
    """

    duplicate_items: dict[int, tuple[UUID, ...]] = field(default_factory=dict)
    skip_duplicates: set[int] = field(default_factory=set)
    override_duplicates: set[int] = field(default_factory=set)

    def clear_resolutions(self) -> None:
        self.skip_duplicates.clear()
        self.override_duplicates.clear()

    def decision_for(self, index: int) -> DuplicateDecision | None:
        if index in self.skip_duplicates:
            return DuplicateDecision.SKIP
        if index in self.override_duplicates:
            return DuplicateDecision.IMPORT
        return None


def detect_duplicates(
    items: Sequence[ImportItem],
    bound: Mapping[int, MemberRef],
    existing: Mapping[int, Sequence[LeaveRequest]],
) -> dict[int, tuple[UUID, ...]]:
    """Flag items that collide with stored requests or repeat an earlier import item.

    ``bound`` holds the member of every active item, ``existing`` the stored
    requests of that member on the item's date.
    """

    flagged: dict[int, tuple[UUID, ...]] = {}
    seen: set[tuple[UUID, object, object]] = set()
    for item in items:
        member = bound.get(item.original_index)
        if member is None:
            continue
        rows = existing.get(item.original_index, ())
        if rows:
            flagged[item.original_index] = tuple(row.id for row in rows)
        key = (member.member_id, item.request_date, item.leave_type)
        if key in seen:
            flagged.setdefault(item.original_index, ())
        seen.add(key)
    return flagged


def flag_duplicate(data: DuplicateStageData, index: int, decision: DuplicateDecision) -> None:
    if decision is DuplicateDecision.SKIP:
        data.skip_duplicates.add(index)
        data.override_duplicates.discard(index)
    else:
        data.override_duplicates.add(index)
        data.skip_duplicates.discard(index)


def undecided(data: DuplicateStageData) -> tuple[int, ...]:
    return tuple(
        sorted(index for index in data.duplicate_items if data.decision_for(index) is None)
    )


def is_complete(data: DuplicateStageData) -> bool:
    return not undecided(data)


def merge_detection(data: DuplicateStageData, flagged: Mapping[int, tuple[UUID, ...]]) -> None:
    """Replace the flagged set, keeping decisions for items that are still flagged."""

    data.duplicate_items = dict(flagged)
    data.skip_duplicates &= set(flagged)
    data.override_duplicates &= set(flagged)
