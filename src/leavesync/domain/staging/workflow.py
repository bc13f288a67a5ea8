"""Caller-facing operations over a staged import session."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from leavesync.config.reconcile import ReconcileConfig
from leavesync.domain.errors import BlockingReason, InvalidTransitionError, StageValidationError
from leavesync.domain.matching import match_member
from leavesync.domain.model import ImportItem, ImportStage
from leavesync.domain.staging import machine, rollback
from leavesync.domain.staging.commit import CommitExecutor
from leavesync.domain.staging.loaders import StageLoader
from leavesync.domain.staging.progress import (
    calculate_progress_metrics,
    progress_state,
    validate_stage_transition,
)
from leavesync.domain.staging.session import StagedSession

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import date
    from uuid import UUID

    from leavesync.domain.model import ConflictAction, DuplicateDecision, ImportRecord
    from leavesync.domain.ports import UnitOfWorkFactory
    from leavesync.domain.staging.commit import CommitResult
    from leavesync.domain.staging.progress import (
        ProgressMetrics,
        ProgressState,
        TransitionValidation,
    )
    from leavesync.domain.staging.rollback import RollbackPlan

log = getLogger(__name__)


class ReconciliationWorkflow:
    """Session lifecycle from creation to commit.

    Stage decisions are synchronous and never touch the store. Store reads happen
    when a session is created and when a stage is entered; writes happen only in
    ``commit``.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        config: ReconcileConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._config = config or ReconcileConfig()
        self._loader = StageLoader(uow_factory)
        self._executor = CommitExecutor(uow_factory, clock=clock or (lambda: datetime.now(tz=UTC)))

    # -- lifecycle -------------------------------------------------------------

    def start(self, calendar_id: str, records: Sequence[ImportRecord]) -> StagedSession:
        """Create a session from normalized records, pre-binding unambiguous members."""

        with self._uow_factory() as uow:
            members = uow.repositories.members.list_for_calendar(calendar_id)
        items = [
            ImportItem(
                original_index=index,
                record=record,
                match=match_member(record, members, config=self._config.matching),
            )
            for index, record in enumerate(records)
        ]
        session = StagedSession(calendar_id=calendar_id, items=items)
        unbound = sum(1 for item in items if item.needs_member_resolution)
        log.info(
            "Staged session %s for %s: %d item(s), %d need a member",
            session.session_id,
            calendar_id,
            len(items),
            unbound,
        )
        return session

    def commit(self, session: StagedSession, *, actor: str) -> CommitResult:
        """Re-check member integrity, then write the session in one unit of work."""

        session.ensure_mutable()
        self._loader.refresh_integrity(session)
        return self._executor.commit(session, actor=actor)

    # -- unmatched -------------------------------------------------------------

    def resolve_member(self, session: StagedSession, index: int, member_id: UUID) -> ProgressState:
        session.ensure_stage(ImportStage.UNMATCHED)
        with self._uow_factory() as uow:
            member = uow.repositories.members.get(member_id)
        if member is None or not member.is_active:
            raise StageValidationError(
                "Cannot bind an item to a missing or deleted member",
                [
                    BlockingReason(
                        stage=ImportStage.UNMATCHED,
                        category="data_integrity",
                        message=f"member {member_id} is not available",
                        item_indices=(index,),
                    )
                ],
            )
        session.resolve_member(index, member.to_ref())
        return progress_state(session)

    def skip_item(self, session: StagedSession, index: int) -> ProgressState:
        session.skip_item(index)
        return progress_state(session)

    # -- duplicates ------------------------------------------------------------

    def flag_duplicate(
        self, session: StagedSession, index: int, decision: DuplicateDecision
    ) -> ProgressState:
        session.flag_duplicate(index, decision)
        return progress_state(session)

    # -- over-allotment --------------------------------------------------------

    def adjust_allotment(
        self, session: StagedSession, request_date: date, value: int
    ) -> ProgressState:
        session.adjust_allotment(request_date, value)
        return progress_state(session)

    def reorder(
        self, session: StagedSession, request_date: date, ordering: Sequence[int]
    ) -> ProgressState:
        session.reorder(request_date, ordering)
        return progress_state(session)

    def skip_request(
        self, session: StagedSession, index: int, *, skipped: bool = True
    ) -> ProgressState:
        session.skip_request(index, skipped=skipped)
        return progress_state(session)

    # -- database reconciliation -----------------------------------------------

    def resolve_conflict(
        self,
        session: StagedSession,
        conflict_id: str,
        action: ConflictAction,
        reason: str | None = None,
    ) -> ProgressState:
        session.resolve_conflict(conflict_id, action, reason)
        return progress_state(session)

    # -- transitions -----------------------------------------------------------

    def advance(self, session: StagedSession) -> ProgressState:
        """Re-check member integrity, load the next stage and move into it."""

        session.ensure_mutable()
        target = session.current_stage.next_stage
        if target is None:
            raise InvalidTransitionError(
                "final_review is the last stage; commit instead",
                [
                    BlockingReason(
                        stage=session.current_stage, category="transition", message="no next stage"
                    )
                ],
            )
        self._loader.refresh_integrity(session)
        validation = validate_stage_transition(session, target)
        if not validation.is_valid:
            raise StageValidationError(f"Cannot advance to {target.value}", validation.errors)
        for warning in validation.warnings:
            log.warning("Session %s: %s", session.session_id, warning)
        self._loader.populate(session, target)
        return machine.advance(session)

    def plan_rollback(self, session: StagedSession, target: ImportStage) -> RollbackPlan:
        return rollback.plan_rollback(session, target)

    def rollback(
        self, session: StagedSession, plan: RollbackPlan, *, confirmed: bool
    ) -> ProgressState:
        return rollback.apply_rollback(session, plan, confirmed=confirmed)

    def navigate(self, session: StagedSession, target: ImportStage) -> ProgressState:
        return machine.navigate(session, target)

    # -- queries ---------------------------------------------------------------

    def progress(self, session: StagedSession) -> ProgressState:
        return progress_state(session)

    def metrics(self, session: StagedSession) -> ProgressMetrics:
        return calculate_progress_metrics(session, self._config)

    def validate(self, session: StagedSession, target: ImportStage) -> TransitionValidation:
        return validate_stage_transition(session, target)
