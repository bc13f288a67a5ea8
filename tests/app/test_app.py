from __future__ import annotations

import json
from typing import TYPE_CHECKING

from leavesync import app
from leavesync.adapters.staging_store import JsonStagingStore
from leavesync.config import StorageConfig
from leavesync.domain.model import AuditAction, RequestStatus
from tests.helpers.records import CALENDAR, DAY, make_allotment, make_member, make_request

if TYPE_CHECKING:
    from pathlib import Path

    from tests.helpers.store import InMemoryStore


def test_set_allotment_creates_then_overrides(store: InMemoryStore) -> None:
    created = app.set_allotment(
        CALENDAR, DAY, 3, actor="ops", unit_of_work_factory=store.factory()
    )
    updated = app.set_allotment(
        CALENDAR, DAY, 5, actor="lead", unit_of_work_factory=store.factory()
    )

    (allotment,) = store.allotments
    assert allotment.id == created.id == updated.id
    assert allotment.max_allotment == 5
    assert allotment.is_override
    assert allotment.override_reason == app.MANUAL_ALLOTMENT_REASON
    assert [entry.action for entry in store.audit] == [AuditAction.CREATE, AuditAction.UPDATE]
    assert store.lock_calls == [(CALENDAR, DAY), (CALENDAR, DAY)]


def test_add_member_commits(store: InMemoryStore) -> None:
    member = app.add_member(
        pin_number=1042,
        first_name="Dana",
        last_name="Whitfield",
        calendar_id=CALENDAR,
        unit_of_work_factory=store.factory(),
    )

    assert store.state.members[member.id].pin_number == 1042
    assert store.commits == 1


def test_reset_waitlist_renumbers_by_request_time(store: InMemoryStore) -> None:
    early, late = make_member(1), make_member(2)
    first = make_request(late, status=RequestStatus.WAITLISTED, waitlist_position=1, minutes=9)
    second = make_request(early, status=RequestStatus.WAITLISTED, waitlist_position=4, minutes=1)
    store.seed(members=[early, late], leave_requests=[first, second])

    result = app.reset_waitlist(
        CALENDAR,
        DAY,
        actor="ops",
        preserve_order=False,
        unit_of_work_factory=store.factory(),
    )

    assert result.updated_count == 2
    positions = {row.id: row.waitlist_position for row in store.leave_requests}
    assert positions == {second.id: 1, first.id: 2}


def test_stage_import_persists_the_new_session(tmp_path: Path, store: InMemoryStore) -> None:
    member = make_member(7, "Kim", "Ashby")
    store.seed(members=[member], allotments=[make_allotment(1)])
    path = tmp_path / "export.json"
    path.write_text(
        json.dumps(
            {
                "calendarId": CALENDAR,
                "requests": [
                    {
                        "firstName": "Kim",
                        "lastName": "Ashby",
                        "date": DAY.isoformat(),
                        "leaveType": "PLD",
                        "status": "approved",
                        "requestedAt": "2025-01-06T08:00:00Z",
                    }
                ],
            }
        ),
        encoding="utf-8",
    )
    staging = app.build_staging_store(StorageConfig(data_dir=tmp_path / "data"))
    workflow = app.build_workflow(unit_of_work_factory=store.factory())

    session = app.stage_import(path, workflow=workflow, store=staging)

    assert isinstance(staging, JsonStagingStore)
    assert staging.directory == (tmp_path / "data").resolve() / "staging"
    assert staging.list_ids() == [session.session_id]
    assert session.bound_member(0) == member.to_ref()


def test_validate_waitlist_numbers_proposals_in_order(store: InMemoryStore) -> None:
    waiting = make_request(make_member(1), status=RequestStatus.WAITLISTED, waitlist_position=1)
    store.seed(leave_requests=[waiting])

    result = app.validate_waitlist(CALENDAR, DAY, [1, 3], unit_of_work_factory=store.factory())

    assert not result.is_valid
    assert [(c.item_id, c.request_id) for c in result.conflicts] == [(0, waiting.id)]
    assert result.gaps == (2,)
    assert [(s.item_id, s.position) for s in result.suggestions] == [(0, 2), (1, 3)]
    assert store.commits == 0
