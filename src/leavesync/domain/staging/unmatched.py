"""Member resolution for items that matching could not bind."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from leavesync.domain.model import MemberRef

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from uuid import UUID

    from leavesync.domain.model import ImportItem, Member

MEMBER_DELETED = "member was deleted after matching"
MEMBER_MISSING = "member no longer exists"


@dataclass(kw_only=True)
class UnmatchedStageData:
    """Operator bindings and skips, plus bindings demoted by integrity checks.

    ``demoted`` maps an original index to the reason its binding became stale.
    """

    resolutions: dict[int, MemberRef] = field(default_factory=dict)
    skipped_items: set[int] = field(default_factory=set)
    demoted: dict[int, str] = field(default_factory=dict)

    def clear_resolutions(self) -> None:
        self.resolutions.clear()
        self.skipped_items.clear()


def bound_member(item: ImportItem, data: UnmatchedStageData) -> MemberRef | None:
    index = item.original_index
    if index in data.skipped_items:
        return None
    if index in data.resolutions:
        return data.resolutions[index]
    if index in data.demoted:
        return None
    return item.match.member


def requires_resolution(item: ImportItem, data: UnmatchedStageData) -> bool:
    return item.needs_member_resolution or item.original_index in data.demoted


def is_item_resolved(item: ImportItem, data: UnmatchedStageData) -> bool:
    """An item is resolved when it is skipped or bound, explicitly or by matching."""

    return item.original_index in data.skipped_items or bound_member(item, data) is not None


def unresolved_items(items: Iterable[ImportItem], data: UnmatchedStageData) -> tuple[int, ...]:
    return tuple(
        item.original_index
        for item in items
        if requires_resolution(item, data) and not is_item_resolved(item, data)
    )


def is_complete(items: Iterable[ImportItem], data: UnmatchedStageData) -> bool:
    return not unresolved_items(items, data)


def resolve_member(data: UnmatchedStageData, index: int, member: MemberRef) -> None:
    data.resolutions[index] = member
    data.skipped_items.discard(index)
    data.demoted.pop(index, None)


def skip_item(data: UnmatchedStageData, index: int) -> None:
    data.skipped_items.add(index)
    data.resolutions.pop(index, None)


def find_stale_bindings(
    items: Iterable[ImportItem],
    data: UnmatchedStageData,
    members: Mapping[UUID, Member | None],
) -> dict[int, str]:
    """Return bound items whose member vanished or was deleted since binding."""

    stale: dict[int, str] = {}
    for item in items:
        member_ref = bound_member(item, data)
        if member_ref is None:
            continue
        member = members.get(member_ref.member_id)
        if member is None:
            stale[item.original_index] = MEMBER_MISSING
        elif not member.is_active:
            stale[item.original_index] = MEMBER_DELETED
    return stale


def demote(data: UnmatchedStageData, stale: Mapping[int, str]) -> None:
    for index, reason in stale.items():
        data.resolutions.pop(index, None)
        data.demoted[index] = reason
