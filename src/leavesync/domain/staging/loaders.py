"""Store reads that populate stage data when a stage is entered.

Loaders are the only staging code that touches the store. Each one refreshes the
derived part of a stage and keeps operator decisions that still apply, so
re-entering a stage after navigating back does not lose work.
"""

from __future__ import annotations

from collections import defaultdict
from logging import getLogger
from typing import TYPE_CHECKING

from leavesync.domain.model import ImportStage, RequestStatus
from leavesync.domain.staging import db_reconciliation, duplicates, over_allotment, unmatched
from leavesync.domain.staging.final_review import build_summary
from leavesync.domain.staging.session import DateSnapshot, RequestState

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date
    from uuid import UUID

    from leavesync.domain.model import LeaveRequest, Member, MemberRef
    from leavesync.domain.ports import ReconciliationRepositories, UnitOfWorkFactory
    from leavesync.domain.staging.over_allotment import OverAllotmentDate
    from leavesync.domain.staging.session import StagedSession

log = getLogger(__name__)


def capture_snapshot(
    repositories: ReconciliationRepositories, calendar_id: str, request_date: date
) -> DateSnapshot:
    allotment = repositories.allotments.get_for_date(calendar_id, request_date)
    rows = repositories.leave_requests.list_for_date(calendar_id, request_date)
    states = sorted(
        (
            RequestState(
                request_id=row.id, status=row.status, waitlist_position=row.waitlist_position
            )
            for row in rows
        ),
        key=lambda state: str(state.request_id),
    )
    return DateSnapshot(
        request_date=request_date,
        allotment=allotment.max_allotment if allotment is not None else None,
        requests=tuple(states),
    )


def _count_status(rows: Iterable[LeaveRequest], status: RequestStatus) -> int:
    return sum(1 for row in rows if row.status == status)


def _highest_waitlist_position(rows: Iterable[LeaveRequest]) -> int:
    return max((row.waitlist_position or 0 for row in rows if row.is_waitlisted), default=0)


def _stored_match(
    repositories: ReconciliationRepositories,
    session: StagedSession,
    index: int,
    member: MemberRef,
) -> LeaveRequest | None:
    item = session.item(index)
    return repositories.leave_requests.get_by_key(
        session.calendar_id, member.member_id, item.request_date, item.leave_type
    )


class StageLoader:
    """Populates stage data for a session from the operational store."""

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def populate(self, session: StagedSession, stage: ImportStage) -> None:
        if stage is ImportStage.DUPLICATES:
            self._load_duplicates(session)
        elif stage is ImportStage.OVER_ALLOTMENT:
            self._load_over_allotment(session)
        elif stage is ImportStage.DB_RECONCILIATION:
            self._load_db_reconciliation(session)
        elif stage is ImportStage.FINAL_REVIEW:
            session.stage_data.final_review.summary = build_summary(session)

    def refresh_integrity(self, session: StagedSession) -> dict[int, str]:
        """Demote bindings to members that were deleted or removed since matching."""

        bound = session.bound_members()
        if not bound:
            return {}
        member_ids = {ref.member_id for ref in bound.values()}
        with self._uow_factory() as uow:
            found: dict[UUID, Member | None] = {
                member_id: uow.repositories.members.get(member_id) for member_id in member_ids
            }
        stale = unmatched.find_stale_bindings(session.items, session.stage_data.unmatched, found)
        session.demote_stale(stale)
        return stale

    def _load_duplicates(self, session: StagedSession) -> None:
        bound = session.bound_members()
        existing: dict[int, list[LeaveRequest]] = {}
        with self._uow_factory() as uow:
            requests = uow.repositories.leave_requests
            for index, member in bound.items():
                item = session.item(index)
                rows = [
                    row
                    for row in requests.list_for_member_date(member.member_id, item.request_date)
                    if row.calendar_id == session.calendar_id
                ]
                if rows:
                    existing[index] = rows
        candidates = [session.item(index) for index in sorted(bound)]
        flagged = duplicates.detect_duplicates(candidates, bound, existing)
        duplicates.merge_detection(session.stage_data.duplicates, flagged)
        log.info("Session %s: %d duplicate(s) flagged", session.session_id, len(flagged))

    def _load_over_allotment(self, session: StagedSession) -> None:
        """Build per-date capacity info.

        A stored row sharing an active item's key is reconciled against that item
        rather than joined by it, so it is left out of the existing counts.
        """

        bound = session.bound_members()
        by_date: dict[date, list[int]] = defaultdict(list)
        for index in session.active_indices():
            by_date[session.item(index).request_date].append(index)

        dates: dict[date, OverAllotmentDate] = {}
        snapshots: dict[date, DateSnapshot] = {}
        with self._uow_factory() as uow:
            repositories = uow.repositories
            for day, indices in sorted(by_date.items()):
                allotment = repositories.allotments.get_for_date(session.calendar_id, day)
                matched: set[UUID] = set()
                for index in indices:
                    row = _stored_match(repositories, session, index, bound[index])
                    if row is not None:
                        matched.add(row.id)
                rows = [
                    row
                    for row in repositories.leave_requests.list_for_date(session.calendar_id, day)
                    if row.id not in matched
                ]
                dates[day] = over_allotment.build_date(
                    day,
                    import_requests=indices,
                    current_allotment=allotment.max_allotment if allotment is not None else 0,
                    existing_approved=_count_status(rows, RequestStatus.APPROVED),
                    waitlist_base=_highest_waitlist_position(rows),
                )
                snapshots[day] = capture_snapshot(repositories, session.calendar_id, day)

        data = session.stage_data.over_allotment
        over_allotment.merge_dates(data, dates)
        session.snapshots = snapshots
        stated = session.stated_statuses()
        for day in dates:
            over_allotment.recompute(data, day, stated)
        log.info(
            "Session %s: %d date(s), %d over allotment",
            session.session_id,
            len(dates),
            len(data.over_allotted_dates()),
        )

    def _load_db_reconciliation(self, session: StagedSession) -> None:
        bound = session.bound_members()
        assignments = session.assignments()
        dates = session.stage_data.over_allotment.dates
        conflicts: list[db_reconciliation.DbConflict] = []
        matched: dict[int, UUID] = {}
        with self._uow_factory() as uow:
            for index, implied in sorted(assignments.items()):
                if implied.is_skipped:
                    continue
                persisted = _stored_match(uow.repositories, session, index, bound[index])
                if persisted is None:
                    continue
                matched[index] = persisted.id
                info = dates[persisted.request_date]
                conflict = db_reconciliation.classify(
                    index, persisted, implied, waitlist_base=info.waitlist_base
                )
                if conflict is not None:
                    conflicts.append(conflict)
        db_reconciliation.merge_conflicts(session.stage_data.db_reconciliation, conflicts, matched)
        log.info("Session %s: %d store conflict(s)", session.session_id, len(conflicts))
