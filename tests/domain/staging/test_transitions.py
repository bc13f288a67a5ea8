from __future__ import annotations

import pytest

from leavesync.domain.errors import (
    InvalidTransitionError,
    RollbackNotConfirmedError,
    SessionCommittedError,
    StaleRollbackPlanError,
    StageValidationError,
)
from leavesync.domain.model import STAGE_ORDER, ConflictAction, DuplicateDecision, ImportStage
from leavesync.domain.staging import StagedSession, db_reconciliation, duplicates, machine
from leavesync.domain.staging.rollback import apply_rollback, plan_rollback
from tests.helpers.records import DAY, make_member, make_request
from tests.helpers.sessions import members_for, session_at, with_date


def _assert_prefix(session: StagedSession) -> None:
    assert session.completed_stages == list(STAGE_ORDER[: len(session.completed_stages)])


def _reviewed_session() -> StagedSession:
    """A session in final review with a decision recorded in every stage."""

    session = with_date(session_at(ImportStage.DUPLICATES, members_for(5)), allotment=3)
    duplicates.merge_detection(session.stage_data.duplicates, {4: ()})
    session.flag_duplicate(4, DuplicateDecision.IMPORT)
    session.current_stage = ImportStage.OVER_ALLOTMENT
    session.completed_stages.append(ImportStage.DUPLICATES)
    session.adjust_allotment(DAY, 4)
    session.reorder(DAY, [4, 3, 2, 1, 0])
    session.current_stage = ImportStage.DB_RECONCILIATION
    session.completed_stages.append(ImportStage.OVER_ALLOTMENT)
    stored = make_request(make_member(99))
    conflict = db_reconciliation.classify(0, stored, session.assignments()[0])
    assert conflict is not None
    db_reconciliation.merge_conflicts(
        session.stage_data.db_reconciliation, [conflict], {0: stored.id}
    )
    session.resolve_conflict(conflict.conflict_id, ConflictAction.KEEP)
    machine.advance(session)
    return session


def test_advance_walks_every_stage_in_order() -> None:
    session = session_at(ImportStage.UNMATCHED, members_for(2))

    for expected in STAGE_ORDER[1:]:
        state = machine.advance(session)
        assert state.current_stage is expected
        _assert_prefix(session)

    assert session.completed_stages == list(STAGE_ORDER[:-1])
    with pytest.raises(InvalidTransitionError):
        machine.advance(session)


def test_advance_refuses_an_incomplete_stage() -> None:
    session = with_date(session_at(ImportStage.OVER_ALLOTMENT, members_for(5)), allotment=3)
    session.adjust_allotment(DAY, 4)

    with pytest.raises(StageValidationError) as excinfo:
        machine.advance(session)

    assert excinfo.value.reasons[0].category == "unresolved_date"
    assert session.current_stage is ImportStage.OVER_ALLOTMENT


def test_navigate_only_reaches_completed_stages() -> None:
    session = _reviewed_session()
    before = session.stage_data.over_allotment.allotment_adjustments.copy()

    machine.navigate(session, ImportStage.OVER_ALLOTMENT)

    assert session.current_stage is ImportStage.OVER_ALLOTMENT
    assert session.stage_data.over_allotment.allotment_adjustments == before
    assert ImportStage.DB_RECONCILIATION in session.completed_stages
    with pytest.raises(InvalidTransitionError):
        machine.navigate(session, ImportStage.FINAL_REVIEW)


def test_rollback_from_final_review_keeps_resolved_duplicates() -> None:
    session = _reviewed_session()

    plan = plan_rollback(session, ImportStage.OVER_ALLOTMENT)
    assert plan.cleared_stages == STAGE_ORDER[2:]
    assert session.current_stage is ImportStage.FINAL_REVIEW

    state = apply_rollback(session, plan, confirmed=True)

    assert state.current_stage is ImportStage.OVER_ALLOTMENT
    assert session.completed_stages == [ImportStage.UNMATCHED, ImportStage.DUPLICATES]
    assert session.stage_data.duplicates.override_duplicates == {4}
    oa = session.stage_data.over_allotment
    assert oa.allotment_adjustments == {}
    assert oa.request_ordering == {}
    assert DAY in oa.dates
    assert session.stage_data.db_reconciliation.resolutions == {}
    assert session.stage_data.db_reconciliation.conflicts


@pytest.mark.parametrize("target", STAGE_ORDER[:-1])
def test_rollback_clears_target_and_later_only(target: ImportStage) -> None:
    session = _reviewed_session()

    apply_rollback(session, plan_rollback(session, target), confirmed=True)

    assert session.completed_stages == list(STAGE_ORDER[: target.order])
    assert session.current_stage is target
    _assert_prefix(session)


def test_rollback_requires_confirmation_and_a_fresh_plan() -> None:
    session = _reviewed_session()
    plan = plan_rollback(session, ImportStage.DUPLICATES)

    with pytest.raises(RollbackNotConfirmedError):
        apply_rollback(session, plan, confirmed=False)
    assert session.current_stage is ImportStage.FINAL_REVIEW

    session.touch()
    with pytest.raises(StaleRollbackPlanError):
        apply_rollback(session, plan, confirmed=True)


def test_rollback_targets_must_be_earlier_and_session_open() -> None:
    session = _reviewed_session()

    with pytest.raises(InvalidTransitionError):
        plan_rollback(session, ImportStage.FINAL_REVIEW)

    session.stage_data.final_review.committed = True
    with pytest.raises(SessionCommittedError):
        plan_rollback(session, ImportStage.UNMATCHED)
