"""Returning a session to an earlier stage.

Planning is pure and produces the list of decisions that will be lost; applying
the plan requires the caller's confirmation and a session that has not changed
since the plan was made.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from leavesync.domain.errors import (
    BlockingReason,
    InvalidTransitionError,
    RollbackNotConfirmedError,
    SessionCommittedError,
    StaleRollbackPlanError,
    StageValidationError,
)
from leavesync.domain.model import STAGE_ORDER, ImportStage
from leavesync.domain.staging.progress import blocking_reasons, describe_discard, progress_state

if TYPE_CHECKING:
    from leavesync.domain.staging.progress import ProgressState
    from leavesync.domain.staging.session import StagedSession

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RollbackPlan:
    target: ImportStage
    from_stage: ImportStage
    revision: int
    cleared_stages: tuple[ImportStage, ...]
    discarded: tuple[str, ...]
    blocking: tuple[BlockingReason, ...] = ()

    @property
    def is_allowed(self) -> bool:
        return not self.blocking


def plan_rollback(session: StagedSession, target: ImportStage) -> RollbackPlan:
    """Describe what rolling back to ``target`` would discard. Changes nothing."""

    if session.is_committed:
        raise SessionCommittedError(f"Session {session.session_id} is committed")
    current = session.current_stage
    if target.order >= current.order:
        raise InvalidTransitionError(
            f"Rollback needs a stage before {current.value}",
            [
                BlockingReason(
                    stage=target,
                    category="transition",
                    message=f"{target.value} is not earlier than {current.value}",
                )
            ],
        )

    blocking: list[BlockingReason] = []
    for stage in target.earlier_stages:
        blocking.extend(blocking_reasons(session, stage))

    return RollbackPlan(
        target=target,
        from_stage=current,
        revision=session.revision,
        cleared_stages=STAGE_ORDER[target.order :],
        discarded=describe_discard(session, target),
        blocking=tuple(blocking),
    )


def apply_rollback(
    session: StagedSession, plan: RollbackPlan, *, confirmed: bool
) -> ProgressState:
    """Discard completion marks and decisions for the plan's target and later stages."""

    session.ensure_mutable()
    if not confirmed:
        raise RollbackNotConfirmedError(
            f"Rollback to {plan.target.value} discards: " + ("; ".join(plan.discarded) or "nothing")
        )
    if plan.revision != session.revision or plan.from_stage != session.current_stage:
        raise StaleRollbackPlanError(
            f"Session changed since the rollback plan (revision {plan.revision} -> "
            f"{session.revision})"
        )
    if not plan.is_allowed:
        raise StageValidationError(f"Cannot roll back to {plan.target.value}", plan.blocking)

    session.completed_stages = [s for s in session.completed_stages if s.order < plan.target.order]
    for stage in plan.cleared_stages:
        session.stage_data.clear(stage)
    session.current_stage = plan.target
    session.touch()
    log.info(
        "Session %s rolled back %s -> %s",
        session.session_id,
        plan.from_stage.value,
        plan.target.value,
    )
    return progress_state(session)
