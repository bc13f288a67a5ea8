from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from leavesync.domain.errors import InvalidTransitionError, StageValidationError
from leavesync.domain.model import ImportStage, MatchStatus
from leavesync.domain.staging import ReconciliationWorkflow
from tests.helpers.records import CALENDAR, DAY, make_allotment, make_member, make_record
from tests.helpers.sessions import members_for

if TYPE_CHECKING:
    from tests.helpers.store import InMemoryStore


def test_start_binds_unambiguous_members_only(store: InMemoryStore) -> None:
    dana = make_member(1, "Dana", "Whitfield")
    twin = make_member(2, "Dana", "Whitfield")
    kim = make_member(3, "Kim", "Ashby")
    store.seed(members=[dana, twin, kim, make_member(4, "Lee", "Park", calendar_id="other")])
    records = [
        make_record(first_name="Kim", last_name="Ashby"),
        make_record(first_name="Dana", last_name="Whitfield", pin_number=1),
        make_record(first_name="Dana", last_name="Whitfield"),
        make_record(first_name="Lee", last_name="Park"),
    ]

    session = ReconciliationWorkflow(store.factory()).start(CALENDAR, records)

    statuses = [item.match.status for item in session.items]
    assert statuses[0] is MatchStatus.MATCHED
    assert session.bound_member(0) == kim.to_ref()
    assert session.bound_member(1) == dana.to_ref()
    assert statuses[2] is MatchStatus.MULTIPLE_MATCHES
    assert [c.member.pin_number for c in session.items[2].match.candidates][:2] == [1, 2]
    assert session.current_stage is ImportStage.UNMATCHED
    assert session.revision == 0


def test_full_walk_with_default_waitlisting(store: InMemoryStore) -> None:
    members = members_for(5)
    store.seed(members=members, allotments=[make_allotment(3)])
    workflow = ReconciliationWorkflow(store.factory())
    session = workflow.start(
        CALENDAR, [make_record(member, minutes=i) for i, member in enumerate(members)]
    )

    for expected in (
        ImportStage.DUPLICATES,
        ImportStage.OVER_ALLOTMENT,
        ImportStage.DB_RECONCILIATION,
        ImportStage.FINAL_REVIEW,
    ):
        assert workflow.advance(session).current_stage is expected

    summary = session.stage_data.final_review.summary
    assert summary is not None
    assert (summary.approved, summary.waitlisted, summary.skipped) == (3, 2, 0)
    assert summary.defaulted_dates == (DAY,)
    assert workflow.metrics(session).completed_stages == 4
    assert workflow.commit(session, actor="ops").success

    waitlisted = sorted(
        (row.waitlist_position, row.requested_at)
        for row in store.leave_requests
        if row.is_waitlisted
    )
    assert [position for position, _ in waitlisted] == [1, 2]


def test_advance_demotes_members_deleted_since_matching(store: InMemoryStore) -> None:
    members = members_for(2)
    store.seed(members=members)
    workflow = ReconciliationWorkflow(store.factory())
    session = workflow.start(CALENDAR, [make_record(member) for member in members])
    store.state.members[members[1].id].deleted = True

    with pytest.raises(StageValidationError) as excinfo:
        workflow.advance(session)

    assert excinfo.value.reasons[0].category == "data_integrity"
    assert session.bound_member(1) is None
    assert session.current_stage is ImportStage.UNMATCHED

    with pytest.raises(StageValidationError):
        workflow.resolve_member(session, 1, members[1].id)
    workflow.skip_item(session, 1)
    assert workflow.advance(session).current_stage is ImportStage.DUPLICATES


def test_revisiting_an_earlier_stage_keeps_decisions(store: InMemoryStore) -> None:
    members = members_for(5)
    store.seed(members=members, allotments=[make_allotment(3)])
    workflow = ReconciliationWorkflow(store.factory())
    session = workflow.start(CALENDAR, [make_record(member) for member in members])
    workflow.advance(session)
    workflow.advance(session)
    workflow.adjust_allotment(session, DAY, 5)
    workflow.reorder(session, DAY, [2, 0, 1, 3, 4])

    workflow.navigate(session, ImportStage.DUPLICATES)
    with pytest.raises(StageValidationError):
        workflow.adjust_allotment(session, DAY, 4)
    workflow.advance(session)

    data = session.stage_data.over_allotment
    assert data.allotment_adjustments == {DAY: 5}
    assert data.request_ordering == {DAY: [2, 0, 1, 3, 4]}
    assert all(entry.is_approved for entry in session.assignment(DAY))


def test_commit_is_the_only_way_out_of_final_review(store: InMemoryStore) -> None:
    members = members_for(1)
    store.seed(members=members, allotments=[make_allotment(2)])
    workflow = ReconciliationWorkflow(store.factory())
    session = workflow.start(CALENDAR, [make_record(members[0])])
    for _ in range(4):
        workflow.advance(session)

    with pytest.raises(InvalidTransitionError):
        workflow.advance(session)
    validation = workflow.validate(session, ImportStage.OVER_ALLOTMENT)
    assert validation.is_valid
    assert "over_allotment: completion mark" in validation.warnings
