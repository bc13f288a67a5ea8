"""Capacity decisions for dates where imports exceed the allotment.

Every imported date gets an ``OverAllotmentDate``; only those with a positive
``over_allotment_count`` need review. A reviewed date is resolved when it has an
explicit ordering plus an allotment decision (or the decision cannot matter), or
when the operator left it alone entirely. Leaving it alone keeps the current
allotment, natural order and waitlists the overflow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING

from leavesync.domain.allotment import (
    assign_positions,
    changed_indices,
    effective_limit,
    over_allotment_count,
    resolve_order,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from leavesync.domain.allotment import PositionedRequest
    from leavesync.domain.model import StatedStatus


@dataclass(frozen=True, slots=True, kw_only=True)
class OverAllotmentDate:
    request_date: date
    current_allotment: int
    existing_requests: int
    import_requests: tuple[int, ...]
    suggested_allotment: int
    over_allotment_count: int
    # highest stored waitlist position; imported ranks are placed after it
    waitlist_base: int = 0

    @property
    def is_over_allotted(self) -> bool:
        return self.over_allotment_count > 0


@dataclass(kw_only=True)
class OverAllotmentStageData:
    dates: dict[date, OverAllotmentDate] = field(default_factory=dict)
    allotment_adjustments: dict[date, int] = field(default_factory=dict)
    request_ordering: dict[date, list[int]] = field(default_factory=dict)
    skipped_requests: set[int] = field(default_factory=set)
    # sticky: once an item's status differed from the stated one it stays flagged
    status_changed: set[int] = field(default_factory=set)

    def clear_resolutions(self) -> None:
        self.allotment_adjustments.clear()
        self.request_ordering.clear()
        self.skipped_requests.clear()
        self.status_changed.clear()

    def over_allotted_dates(self) -> list[OverAllotmentDate]:
        return [info for _, info in sorted(self.dates.items()) if info.is_over_allotted]

    def date_of(self, index: int) -> date | None:
        for day, info in self.dates.items():
            if index in info.import_requests:
                return day
        return None


def build_date(
    request_date: date,
    *,
    import_requests: Sequence[int],
    current_allotment: int,
    existing_approved: int,
    waitlist_base: int = 0,
) -> OverAllotmentDate:
    active = len(import_requests)
    return OverAllotmentDate(
        request_date=request_date,
        current_allotment=current_allotment,
        existing_requests=existing_approved,
        import_requests=tuple(sorted(import_requests)),
        suggested_allotment=existing_approved + active,
        over_allotment_count=over_allotment_count(current_allotment, existing_approved, active),
        waitlist_base=waitlist_base,
    )


def limit_for(data: OverAllotmentStageData, request_date: date) -> int:
    info = data.dates[request_date]
    return effective_limit(
        info.current_allotment,
        info.existing_requests,
        override=data.allotment_adjustments.get(request_date),
    )


def order_for(data: OverAllotmentStageData, request_date: date) -> tuple[int, ...]:
    info = data.dates[request_date]
    return resolve_order(info.import_requests, data.request_ordering.get(request_date))


def assignment_for(
    data: OverAllotmentStageData,
    request_date: date,
    stated: Mapping[int, StatedStatus],
) -> tuple[PositionedRequest, ...]:
    return assign_positions(
        order_for(data, request_date),
        limit=limit_for(data, request_date),
        stated=stated,
        skipped=data.skipped_requests,
        sticky_changes=data.status_changed,
    )


def recompute(
    data: OverAllotmentStageData,
    request_date: date,
    stated: Mapping[int, StatedStatus],
) -> tuple[PositionedRequest, ...]:
    """Re-run assignment for one date and record status changes on the sticky set."""

    assignment = assignment_for(data, request_date, stated)
    data.status_changed |= changed_indices(assignment)
    return assignment


def is_date_resolved(data: OverAllotmentStageData, request_date: date) -> bool:
    info = data.dates[request_date]
    if not info.is_over_allotted:
        return True
    has_ordering = request_date in data.request_ordering
    has_adjustment = request_date in data.allotment_adjustments
    if not has_ordering and not has_adjustment:
        return True
    return has_ordering and (has_adjustment or info.over_allotment_count == 0)


def defaulted_dates(data: OverAllotmentStageData) -> tuple[date, ...]:
    """Over-allotted dates that will commit with default waitlisting, unreviewed."""

    return tuple(
        info.request_date
        for info in data.over_allotted_dates()
        if info.request_date not in data.request_ordering
        and info.request_date not in data.allotment_adjustments
    )


def unresolved_dates(data: OverAllotmentStageData) -> tuple[date, ...]:
    return tuple(
        info.request_date
        for info in data.over_allotted_dates()
        if not is_date_resolved(data, info.request_date)
    )


def is_complete(data: OverAllotmentStageData) -> bool:
    return not unresolved_dates(data)


def merge_dates(data: OverAllotmentStageData, dates: Mapping[date, OverAllotmentDate]) -> None:
    """Replace date info, keeping decisions that still apply to the new candidates."""

    data.dates = dict(dates)
    for day in list(data.allotment_adjustments):
        if day not in dates:
            del data.allotment_adjustments[day]
    for day in list(data.request_ordering):
        if day not in dates:
            del data.request_ordering[day]
            continue
        candidates = set(dates[day].import_requests)
        data.request_ordering[day] = [i for i in data.request_ordering[day] if i in candidates]
    active = {index for info in dates.values() for index in info.import_requests}
    data.skipped_requests &= active
