"""Summary of what a commit will write, and the commit outcome."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime  # noqa: TC003
from typing import TYPE_CHECKING

from leavesync.domain.staging.db_reconciliation import QueuedWrite, queued_writes
from leavesync.domain.staging.over_allotment import defaulted_dates

if TYPE_CHECKING:
    from leavesync.domain.staging.over_allotment import OverAllotmentStageData
    from leavesync.domain.staging.session import StagedSession


@dataclass(frozen=True, slots=True, kw_only=True)
class AllotmentChange:
    request_date: date
    previous: int
    new: int

    @property
    def delta(self) -> int:
        return self.new - self.previous


@dataclass(frozen=True, slots=True, kw_only=True)
class ReviewSummary:
    approved: int
    waitlisted: int
    skipped: int
    total: int
    allotment_changes: tuple[AllotmentChange, ...] = ()
    queued_writes: tuple[QueuedWrite, ...] = ()
    defaulted_dates: tuple[date, ...] = ()


@dataclass(kw_only=True)
class FinalReviewStageData:
    summary: ReviewSummary | None = None
    committed: bool = False
    committed_at: datetime | None = None
    commit_error: str | None = None

    def clear_resolutions(self) -> None:
        self.summary = None
        self.commit_error = None


def allotment_changes(data: OverAllotmentStageData) -> tuple[AllotmentChange, ...]:
    changes: list[AllotmentChange] = []
    for day, value in sorted(data.allotment_adjustments.items()):
        info = data.dates.get(day)
        if info is None or info.current_allotment == value:
            continue
        changes.append(
            AllotmentChange(request_date=day, previous=info.current_allotment, new=value)
        )
    return tuple(changes)


def build_summary(session: StagedSession) -> ReviewSummary:
    assignments = session.assignments()
    approved = sum(1 for entry in assignments.values() if entry.is_approved)
    waitlisted = sum(1 for entry in assignments.values() if entry.is_waitlisted)
    total = len(session.items)
    over_allotment = session.stage_data.over_allotment
    return ReviewSummary(
        approved=approved,
        waitlisted=waitlisted,
        skipped=total - approved - waitlisted,
        total=total,
        allotment_changes=allotment_changes(over_allotment),
        queued_writes=queued_writes(session.stage_data.db_reconciliation),
        defaulted_dates=defaulted_dates(over_allotment),
    )
