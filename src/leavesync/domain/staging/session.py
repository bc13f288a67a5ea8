"""The staged session aggregate.

All operator decisions are applied through ``StagedSession`` methods, which check
that the session is still open and that the decision belongs to the current stage.
Stage transitions live in ``machine`` and ``rollback``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from leavesync.domain.errors import (
    BlockingReason,
    SessionCommittedError,
    StageMismatchError,
    StageValidationError,
    UnknownItemError,
)
from leavesync.domain.model import (
    ConflictAction,
    DuplicateDecision,
    ImportItem,
    ImportStage,
    MemberRef,
    RequestStatus,
)
from leavesync.domain.staging import db_reconciliation, duplicates, over_allotment, unmatched
from leavesync.domain.staging.db_reconciliation import DbReconciliationStageData
from leavesync.domain.staging.duplicates import DuplicateStageData
from leavesync.domain.staging.final_review import FinalReviewStageData
from leavesync.domain.staging.over_allotment import OverAllotmentStageData
from leavesync.domain.staging.unmatched import UnmatchedStageData

if TYPE_CHECKING:
    from collections.abc import Sequence

    from leavesync.domain.allotment import PositionedRequest
    from leavesync.domain.model import StatedStatus

log = getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class RequestState:
    request_id: UUID
    status: RequestStatus
    waitlist_position: int | None


@dataclass(frozen=True, slots=True, kw_only=True)
class DateSnapshot:
    """Stored state of one date, captured on entering over-allotment review."""

    request_date: date
    allotment: int | None
    requests: tuple[RequestState, ...] = ()


@dataclass(kw_only=True)
class StageData:
    unmatched: UnmatchedStageData = field(default_factory=UnmatchedStageData)
    duplicates: DuplicateStageData = field(default_factory=DuplicateStageData)
    over_allotment: OverAllotmentStageData = field(default_factory=OverAllotmentStageData)
    db_reconciliation: DbReconciliationStageData = field(
        default_factory=DbReconciliationStageData
    )
    final_review: FinalReviewStageData = field(default_factory=FinalReviewStageData)

    def for_stage(
        self, stage: ImportStage
    ) -> (
        UnmatchedStageData
        | DuplicateStageData
        | OverAllotmentStageData
        | DbReconciliationStageData
        | FinalReviewStageData
    ):
        return getattr(self, stage.value)

    def clear(self, stage: ImportStage) -> None:
        self.for_stage(stage).clear_resolutions()


@dataclass(kw_only=True)
class StagedSession:
    calendar_id: str
    items: list[ImportItem]
    session_id: UUID = field(default_factory=uuid4)
    current_stage: ImportStage = ImportStage.UNMATCHED
    completed_stages: list[ImportStage] = field(default_factory=list)
    stage_data: StageData = field(default_factory=StageData)
    snapshots: dict[date, DateSnapshot] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    last_modified: datetime = field(default_factory=utcnow)
    revision: int = 0

    # -- queries ---------------------------------------------------------------

    @property
    def is_committed(self) -> bool:
        return self.stage_data.final_review.committed

    def item(self, index: int) -> ImportItem:
        if not 0 <= index < len(self.items) or self.items[index].original_index != index:
            raise UnknownItemError(index)
        return self.items[index]

    def bound_member(self, index: int) -> MemberRef | None:
        return unmatched.bound_member(self.item(index), self.stage_data.unmatched)

    def bound_members(self) -> dict[int, MemberRef]:
        bound: dict[int, MemberRef] = {}
        for item in self.items:
            member = unmatched.bound_member(item, self.stage_data.unmatched)
            if member is not None:
                bound[item.original_index] = member
        return bound

    def active_indices(self) -> tuple[int, ...]:
        """Items still headed for the store: bound and not skipped as duplicates."""

        skipped = self.stage_data.duplicates.skip_duplicates
        return tuple(index for index in self.bound_members() if index not in skipped)

    def stated_statuses(self) -> dict[int, StatedStatus]:
        return {item.original_index: item.stated_status for item in self.items}

    def assignment(self, request_date: date) -> tuple[PositionedRequest, ...]:
        return over_allotment.assignment_for(
            self.stage_data.over_allotment, request_date, self.stated_statuses()
        )

    def assignments(self) -> dict[int, PositionedRequest]:
        result: dict[int, PositionedRequest] = {}
        for day in sorted(self.stage_data.over_allotment.dates):
            for entry in self.assignment(day):
                result[entry.original_index] = entry
        return result

    # -- guards ----------------------------------------------------------------

    def ensure_mutable(self) -> None:
        if self.is_committed:
            raise SessionCommittedError(f"Session {self.session_id} is committed")

    def ensure_stage(self, stage: ImportStage) -> None:
        self.ensure_mutable()
        if self.current_stage != stage:
            raise StageMismatchError(
                f"{stage.value} decisions need {stage.value} as the current stage",
                [
                    BlockingReason(
                        stage=stage,
                        category="stage_mismatch",
                        message=f"current stage is {self.current_stage.value}",
                    )
                ],
            )

    def touch(self) -> None:
        self.revision += 1
        self.last_modified = utcnow()

    # -- unmatched -------------------------------------------------------------

    def resolve_member(self, index: int, member: MemberRef) -> None:
        self.ensure_stage(ImportStage.UNMATCHED)
        self.item(index)
        unmatched.resolve_member(self.stage_data.unmatched, index, member)
        self.touch()

    def skip_item(self, index: int) -> None:
        self.ensure_stage(ImportStage.UNMATCHED)
        self.item(index)
        unmatched.skip_item(self.stage_data.unmatched, index)
        self.touch()

    def demote_stale(self, stale: dict[int, str]) -> None:
        """Drop bindings that no longer point at an active member."""

        if not stale:
            return
        unmatched.demote(self.stage_data.unmatched, stale)
        for index, reason in sorted(stale.items()):
            log.warning("Item %d demoted to unmatched: %s", index, reason)
        self.touch()

    # -- duplicates ------------------------------------------------------------

    def flag_duplicate(self, index: int, decision: DuplicateDecision) -> None:
        self.ensure_stage(ImportStage.DUPLICATES)
        self.item(index)
        if index not in self.stage_data.duplicates.duplicate_items:
            raise StageValidationError(
                "Only flagged duplicates take a duplicate decision",
                [
                    BlockingReason(
                        stage=ImportStage.DUPLICATES,
                        category="not_a_duplicate",
                        message=f"item {index} is not flagged as a duplicate",
                        item_indices=(index,),
                    )
                ],
            )
        duplicates.flag_duplicate(self.stage_data.duplicates, index, decision)
        self.touch()

    # -- over-allotment --------------------------------------------------------

    def _require_date(self, request_date: date) -> None:
        if request_date not in self.stage_data.over_allotment.dates:
            raise StageValidationError(
                "No import requests on that date",
                [
                    BlockingReason(
                        stage=ImportStage.OVER_ALLOTMENT,
                        category="unknown_date",
                        message=f"{request_date.isoformat()} has no active import requests",
                    )
                ],
            )

    def _recompute(self, request_date: date) -> tuple[PositionedRequest, ...]:
        return over_allotment.recompute(
            self.stage_data.over_allotment, request_date, self.stated_statuses()
        )

    def adjust_allotment(self, request_date: date, value: int) -> tuple[PositionedRequest, ...]:
        self.ensure_stage(ImportStage.OVER_ALLOTMENT)
        self._require_date(request_date)
        if value < 0:
            raise StageValidationError(
                "Allotment cannot be negative",
                [
                    BlockingReason(
                        stage=ImportStage.OVER_ALLOTMENT,
                        category="invalid_allotment",
                        message=f"{value} is not a valid allotment",
                    )
                ],
            )
        self.stage_data.over_allotment.allotment_adjustments[request_date] = value
        assignment = self._recompute(request_date)
        self.touch()
        return assignment

    def reorder(self, request_date: date, ordering: Sequence[int]) -> tuple[PositionedRequest, ...]:
        """Store an explicit priority order for a date's import requests."""

        self.ensure_stage(ImportStage.OVER_ALLOTMENT)
        self._require_date(request_date)
        candidates = set(self.stage_data.over_allotment.dates[request_date].import_requests)
        foreign = [index for index in ordering if index not in candidates]
        if foreign or len(set(ordering)) != len(ordering):
            raise StageValidationError(
                "Ordering must list each of the date's import requests at most once",
                [
                    BlockingReason(
                        stage=ImportStage.OVER_ALLOTMENT,
                        category="invalid_ordering",
                        message=f"ordering for {request_date.isoformat()} is not a permutation",
                        item_indices=tuple(foreign),
                    )
                ],
            )
        self.stage_data.over_allotment.request_ordering[request_date] = list(ordering)
        assignment = self._recompute(request_date)
        self.touch()
        return assignment

    def skip_request(self, index: int, *, skipped: bool = True) -> tuple[PositionedRequest, ...]:
        self.ensure_stage(ImportStage.OVER_ALLOTMENT)
        self.item(index)
        data = self.stage_data.over_allotment
        request_date = data.date_of(index)
        if request_date is None:
            raise StageValidationError(
                "Item is not an active import request",
                [
                    BlockingReason(
                        stage=ImportStage.OVER_ALLOTMENT,
                        category="inactive_item",
                        message=f"item {index} is not part of any date",
                        item_indices=(index,),
                    )
                ],
            )
        if skipped:
            data.skipped_requests.add(index)
        else:
            data.skipped_requests.discard(index)
        assignment = self._recompute(request_date)
        self.touch()
        return assignment

    # -- database reconciliation -----------------------------------------------

    def resolve_conflict(
        self, conflict_id: str, action: ConflictAction, reason: str | None = None
    ) -> None:
        self.ensure_stage(ImportStage.DB_RECONCILIATION)
        data = self.stage_data.db_reconciliation
        if data.conflict(conflict_id) is None:
            raise StageValidationError(
                "Unknown conflict",
                [
                    BlockingReason(
                        stage=ImportStage.DB_RECONCILIATION,
                        category="unknown_conflict",
                        message=f"no conflict {conflict_id}",
                    )
                ],
            )
        db_reconciliation.resolve(data, conflict_id, action, reason)
        self.touch()
