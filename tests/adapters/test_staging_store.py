from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from leavesync.adapters.staging_store import JsonStagingStore
from leavesync.domain.errors import SessionNotFoundError, StoreError
from leavesync.domain.model import ImportStage
from leavesync.domain.staging import ReconciliationWorkflow
from tests.helpers.records import CALENDAR, DAY, make_allotment, make_record
from tests.helpers.sessions import members_for

if TYPE_CHECKING:
    from pathlib import Path

    from leavesync.domain.staging import StagedSession
    from tests.helpers.store import InMemoryStore


def _session_in_review(store: InMemoryStore) -> tuple[ReconciliationWorkflow, StagedSession]:
    members = members_for(4)
    store.seed(members=members, allotments=[make_allotment(2)])
    workflow = ReconciliationWorkflow(store.factory())
    records = [make_record(member, minutes=i) for i, member in enumerate(members)]
    records.append(make_record(first_name="Unknown", last_name="Visitor"))
    session = workflow.start(CALENDAR, records)
    workflow.skip_item(session, 4)
    workflow.advance(session)
    workflow.advance(session)
    workflow.adjust_allotment(session, DAY, 3)
    workflow.reorder(session, DAY, [3, 2, 1, 0])
    return workflow, session


def test_session_survives_a_round_trip(tmp_path: Path, store: InMemoryStore) -> None:
    _, session = _session_in_review(store)
    staging = JsonStagingStore(tmp_path / "sessions")

    path = staging.save(session)
    loaded = staging.load(session.session_id)

    assert path.name == f"{session.session_id}.json"
    assert loaded == session
    assert loaded.current_stage is ImportStage.OVER_ALLOTMENT
    assert loaded.stage_data.over_allotment.allotment_adjustments == {DAY: 3}
    assert loaded.stage_data.unmatched.skipped_items == {4}
    assert loaded.snapshots == session.snapshots
    assert loaded.assignment(DAY) == session.assignment(DAY)


def test_reloaded_session_still_commits(tmp_path: Path, store: InMemoryStore) -> None:
    workflow, session = _session_in_review(store)
    staging = JsonStagingStore(tmp_path)
    staging.save(session)

    resumed = staging.load(session.session_id)
    workflow.advance(resumed)
    workflow.advance(resumed)
    result = workflow.commit(resumed, actor="ops")
    staging.save(resumed)

    assert result.success
    assert result.created == 4
    assert staging.load(session.session_id).is_committed


def test_missing_and_corrupt_sessions(tmp_path: Path) -> None:
    staging = JsonStagingStore(tmp_path)
    missing = uuid4()

    with pytest.raises(SessionNotFoundError):
        staging.load(missing)

    (tmp_path / f"{missing}.json").write_text("{}", encoding="utf-8")
    with pytest.raises(StoreError):
        staging.load(missing)


def test_delete_is_idempotent_and_listing_skips_stray_files(
    tmp_path: Path, store: InMemoryStore
) -> None:
    _, session = _session_in_review(store)
    staging = JsonStagingStore(tmp_path)
    assert staging.list_ids() == []
    staging.save(session)
    (tmp_path / "notes.json").write_text("[]", encoding="utf-8")

    assert staging.list_ids() == [session.session_id]
    assert staging.delete(session.session_id) is True
    assert staging.delete(session.session_id) is False
    assert staging.list_ids() == []
