"""Forward and lateral stage transitions."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from leavesync.domain.errors import BlockingReason, InvalidTransitionError, StageValidationError
from leavesync.domain.model import STAGE_ORDER, ImportStage
from leavesync.domain.staging.progress import progress_state, validate_stage_transition

if TYPE_CHECKING:
    from leavesync.domain.staging.progress import ProgressState
    from leavesync.domain.staging.session import StagedSession

log = getLogger(__name__)


def _mark_completed(session: StagedSession, stage: ImportStage) -> None:
    completed = set(session.completed_stages) | {stage}
    session.completed_stages = [s for s in STAGE_ORDER if s in completed]


def advance(session: StagedSession) -> ProgressState:
    """Move to the next stage once the current one and all before it are complete."""

    session.ensure_mutable()
    left = session.current_stage
    target = left.next_stage
    if target is None:
        raise InvalidTransitionError(
            "final_review is the last stage; commit instead",
            [BlockingReason(stage=left, category="transition", message="no next stage")],
        )
    validation = validate_stage_transition(session, target)
    if not validation.is_valid:
        raise StageValidationError(f"Cannot advance to {target.value}", validation.errors)

    _mark_completed(session, left)
    session.current_stage = target
    session.touch()
    log.info("Session %s advanced %s -> %s", session.session_id, left.value, target.value)
    return progress_state(session)


def navigate(session: StagedSession, target: ImportStage) -> ProgressState:
    """Revisit a completed stage without discarding anything."""

    session.ensure_mutable()
    if target.order > session.current_stage.order or target not in session.completed_stages:
        raise InvalidTransitionError(
            f"Cannot navigate to {target.value}",
            [
                BlockingReason(
                    stage=target,
                    category="transition",
                    message="navigation only reaches completed stages at or before the current one",
                )
            ],
        )
    session.current_stage = target
    session.touch()
    log.info("Session %s navigated to %s", session.session_id, target.value)
    return progress_state(session)
