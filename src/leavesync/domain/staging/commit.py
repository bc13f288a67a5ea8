"""Atomic application of a reviewed session to the operational store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import UUID, uuid5

from leavesync.domain.errors import (
    BlockingReason,
    ConcurrentModificationError,
    StageValidationError,
    StoreError,
)
from leavesync.domain.model import (
    STAGE_ORDER,
    Allotment,
    AuditEntry,
    ImportStage,
    LeaveRequest,
    LeaveType,
    RecordType,
    RequestStatus,
)
from leavesync.domain.staging.db_reconciliation import QueuedWrite, queued_writes
from leavesync.domain.staging.final_review import AllotmentChange, allotment_changes
from leavesync.domain.staging.loaders import capture_snapshot
from leavesync.domain.staging.progress import blocking_reasons
from leavesync.domain.waitlist import apply_renumbering

if TYPE_CHECKING:
    from collections.abc import Callable

    from leavesync.domain.ports import ReconciliationRepositories, UnitOfWorkFactory
    from leavesync.domain.staging.session import StagedSession

log = getLogger(__name__)

ALLOTMENT_REASON = "allotment adjusted during import"


@dataclass(frozen=True, slots=True)
class RowFailure:
    record_type: RecordType
    key: str
    message: str


@dataclass(frozen=True, slots=True, kw_only=True)
class CommitResult:
    success: bool
    session_id: UUID
    created: int = 0
    updated: int = 0
    allotments_changed: int = 0
    renumbered: int = 0
    audit_entries: int = 0
    failures: tuple[RowFailure, ...] = ()
    error: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class PlannedRequest:
    original_index: int
    request_id: UUID
    member_id: UUID
    request_date: date
    leave_type: LeaveType
    status: RequestStatus
    waitlist_position: int | None
    requested_at: datetime
    provenance: str


@dataclass(frozen=True, slots=True, kw_only=True)
class CommitPlan:
    allotment_overrides: tuple[AllotmentChange, ...]
    reconciliation_writes: tuple[QueuedWrite, ...]
    new_requests: tuple[PlannedRequest, ...]
    touched_dates: tuple[date, ...]


def request_id_for(session_id: UUID, original_index: int) -> UUID:
    """Deterministic id so replaying a commit upserts instead of duplicating rows."""

    return uuid5(session_id, f"import-item-{original_index}")


def build_commit_plan(session: StagedSession) -> CommitPlan:
    """Collect every write the session implies, in application order."""

    bound = session.bound_members()
    matched = session.stage_data.db_reconciliation.matched_requests
    dates = session.stage_data.over_allotment.dates
    planned: list[PlannedRequest] = []
    for index, entry in sorted(session.assignments().items()):
        if entry.is_skipped or index in matched:
            continue
        item = session.item(index)
        position = entry.waitlist_position
        if position is not None:
            position += dates[item.request_date].waitlist_base
        planned.append(
            PlannedRequest(
                original_index=index,
                request_id=request_id_for(session.session_id, index),
                member_id=bound[index].member_id,
                request_date=item.request_date,
                leave_type=item.leave_type,
                status=RequestStatus(entry.status.value),
                waitlist_position=position,
                requested_at=item.requested_at,
                provenance=item.record.provenance,
            )
        )

    overrides = allotment_changes(session.stage_data.over_allotment)
    writes = queued_writes(session.stage_data.db_reconciliation)
    touched = {change.request_date for change in overrides}
    touched.update(write.request_date for write in writes)
    touched.update(request.request_date for request in planned)
    return CommitPlan(
        allotment_overrides=overrides,
        reconciliation_writes=writes,
        new_requests=tuple(planned),
        touched_dates=tuple(sorted(touched)),
    )


class _CommitBatch:
    """Applies a commit plan inside an open unit of work, tracking the row in flight."""

    def __init__(
        self,
        repositories: ReconciliationRepositories,
        session: StagedSession,
        *,
        actor: str,
        at: datetime,
    ) -> None:
        self.repositories = repositories
        self.session = session
        self.actor = actor
        self.at = at
        self.failures: list[RowFailure] = []
        self.in_flight = (RecordType.LEAVE_REQUEST, "-")
        self.created = 0
        self.updated = 0
        self.allotments = 0
        self.renumbered = 0
        self.audit_entries = 0

    @property
    def calendar_id(self) -> str:
        return self.session.calendar_id

    def _audit(
        self, record: LeaveRequest | Allotment, before: dict[str, object] | None, reason: str
    ) -> None:
        self.repositories.audit.add(
            AuditEntry.for_record(
                record,
                before=before,
                actor=self.actor,
                at=self.at,
                session_id=self.session.session_id,
                reason=reason,
            )
        )
        self.audit_entries += 1

    def _fail(self, key: str, message: str) -> None:
        self.failures.append(RowFailure(RecordType.LEAVE_REQUEST, key, message))

    def lock_and_verify(self, touched_dates: tuple[date, ...]) -> None:
        for day in touched_dates:
            self.repositories.date_locks.acquire(self.calendar_id, day)
        log.info(
            "Session %s holds %d date lock(s) on %s",
            self.session.session_id,
            len(touched_dates),
            self.calendar_id,
        )
        changed = [
            day
            for day in touched_dates
            if capture_snapshot(self.repositories, self.calendar_id, day)
            != self.session.snapshots.get(day)
        ]
        if changed:
            raise ConcurrentModificationError(self.calendar_id, changed)

    def apply_allotments(self, changes: tuple[AllotmentChange, ...]) -> None:
        for change in changes:
            self.in_flight = (RecordType.ALLOTMENT, change.request_date.isoformat())
            allotment = self.repositories.allotments.get_for_date(
                self.calendar_id, change.request_date
            )
            before = allotment.snapshot() if allotment is not None else None
            if allotment is None:
                allotment = Allotment(
                    calendar_id=self.calendar_id,
                    allotment_date=change.request_date,
                    max_allotment=change.new,
                )
                self.repositories.allotments.add(allotment)
            allotment.override(change.new, actor=self.actor, at=self.at, reason=ALLOTMENT_REASON)
            self._audit(allotment, before, ALLOTMENT_REASON)
            self.allotments += 1

    def apply_reconciliation(self, writes: tuple[QueuedWrite, ...]) -> None:
        for write in writes:
            key = str(write.request_id)
            self.in_flight = (RecordType.LEAVE_REQUEST, key)
            row = self.repositories.leave_requests.get(write.request_id)
            if row is None:
                self._fail(key, "stored request no longer exists")
                continue
            position = write.waitlist_position
            if write.to_status == RequestStatus.WAITLISTED and position is None:
                position = self._highest_waitlist_position(write.request_date) + 1
            before = row.snapshot()
            try:
                row.change_status(
                    write.to_status, waitlist_position=position, actor=self.actor, at=self.at
                )
            except ValueError as exc:
                self._fail(key, str(exc))
                continue
            self._audit(row, before, write.reason or f"reconciled {write.conflict_id}")
            self.updated += 1

    def upsert_requests(self, planned_requests: tuple[PlannedRequest, ...]) -> None:
        for planned in planned_requests:
            self.in_flight = (RecordType.LEAVE_REQUEST, f"item {planned.original_index}")
            position = planned.waitlist_position
            existing = self.repositories.leave_requests.get(planned.request_id)
            if existing is not None:
                before = existing.snapshot()
                existing.change_status(
                    planned.status, waitlist_position=position, actor=self.actor, at=self.at
                )
                self._audit(existing, before, "import replayed")
                self.updated += 1
                continue

            row = LeaveRequest(
                id=planned.request_id,
                calendar_id=self.calendar_id,
                member_id=planned.member_id,
                request_date=planned.request_date,
                leave_type=planned.leave_type,
                status=planned.status,
                waitlist_position=position,
                requested_at=planned.requested_at,
                import_source=planned.provenance,
                imported_at=self.at,
                updated_at=self.at,
                updated_by=self.actor,
            )
            self.repositories.leave_requests.add(row)
            self._audit(row, None, "imported")
            self.created += 1

    def renumber(self, touched_dates: tuple[date, ...]) -> None:
        for day in touched_dates:
            self.in_flight = (RecordType.LEAVE_REQUEST, f"waitlist {day.isoformat()}")
            moved = apply_renumbering(
                self.repositories,
                self.calendar_id,
                day,
                actor=self.actor,
                at=self.at,
                session_id=self.session.session_id,
            )
            self.renumbered += moved
            self.audit_entries += moved

    def _highest_waitlist_position(self, request_date: date) -> int:
        rows = self.repositories.leave_requests.list_for_date(self.calendar_id, request_date)
        return max((row.waitlist_position or 0 for row in rows if row.is_waitlisted), default=0)


class CommitExecutor:
    """Writes a session's resolved state as one unit of work, or nothing at all."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def check_ready(self, session: StagedSession) -> None:
        session.ensure_mutable()
        reasons: list[BlockingReason] = []
        if session.current_stage is not ImportStage.FINAL_REVIEW:
            reasons.append(
                BlockingReason(
                    stage=session.current_stage,
                    category="transition",
                    message="commit runs only from final_review",
                )
            )
        for stage in STAGE_ORDER[:-1]:
            if stage not in session.completed_stages:
                reasons.append(
                    BlockingReason(
                        stage=stage,
                        category="incomplete_stage",
                        message=f"{stage.value} is not completed",
                    )
                )
            reasons.extend(blocking_reasons(session, stage))
        if reasons:
            raise StageValidationError("Session is not ready to commit", reasons)

    def commit(self, session: StagedSession, *, actor: str) -> CommitResult:
        """Apply the session, or leave the store untouched and report why.

        Raises ``StageValidationError`` when the session is not ready. Store
        failures are returned in the result and recorded on the session.
        """

        self.check_ready(session)
        plan = build_commit_plan(session)
        batch: _CommitBatch | None = None
        try:
            with self._uow_factory() as uow:
                batch = _CommitBatch(
                    uow.repositories, session, actor=actor, at=self._clock()
                )
                batch.lock_and_verify(plan.touched_dates)
                batch.apply_allotments(plan.allotment_overrides)
                uow.flush()
                batch.apply_reconciliation(plan.reconciliation_writes)
                uow.flush()
                batch.upsert_requests(plan.new_requests)
                uow.flush()
                if batch.failures:
                    uow.rollback()
                    return self._failed(session, batch.failures, "rows could not be written")
                batch.renumber(plan.touched_dates)
                uow.flush()
                uow.commit()
        except ConcurrentModificationError as exc:
            failures = [
                RowFailure(RecordType.LEAVE_REQUEST, f"date {day}", "changed since staging")
                for day in exc.dates
            ]
            return self._failed(session, failures, str(exc))
        except StoreError as exc:
            failures = list(batch.failures) if batch is not None else []
            if batch is not None:
                record_type, key = batch.in_flight
                failures.append(RowFailure(record_type, key, str(exc)))
            return self._failed(session, failures, str(exc))

        review = session.stage_data.final_review
        review.committed = True
        review.committed_at = batch.at
        review.commit_error = None
        session.touch()
        log.info(
            "Session %s committed by %s: created=%d updated=%d allotments=%d renumbered=%d",
            session.session_id,
            actor,
            batch.created,
            batch.updated,
            batch.allotments,
            batch.renumbered,
        )
        return CommitResult(
            success=True,
            session_id=session.session_id,
            created=batch.created,
            updated=batch.updated,
            allotments_changed=batch.allotments,
            renumbered=batch.renumbered,
            audit_entries=batch.audit_entries,
        )

    def _failed(
        self, session: StagedSession, failures: list[RowFailure], message: str
    ) -> CommitResult:
        session.stage_data.final_review.commit_error = message
        session.touch()
        log.warning("Commit of session %s failed: %s", session.session_id, message)
        return CommitResult(
            success=False,
            session_id=session.session_id,
            failures=tuple(failures),
            error=message,
        )
