from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from leavesync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from leavesync.domain.errors import StoreError
from leavesync.domain.model import ImportStage, RequestStatus
from leavesync.domain.staging import ReconciliationWorkflow
from leavesync.domain.staging.commit import request_id_for
from tests.helpers.records import CALENDAR, DAY, make_allotment, make_member, make_record
from tests.helpers.sessions import members_for

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.engine import Engine

NOW = datetime(2025, 2, 1, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyReconciliationUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_uncommitted_work_is_discarded(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    member = make_member(1)

    with SqlAlchemyReconciliationUnitOfWork() as uow:
        uow.repositories.members.add(member)
        uow.flush()

    with SqlAlchemyReconciliationUnitOfWork() as uow:
        assert uow.repositories.members.get(member.id) is None


def test_driver_errors_surface_as_store_errors(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    with SqlAlchemyReconciliationUnitOfWork() as uow:
        uow.repositories.members.add(make_member(1))
        uow.commit()

    with pytest.raises(StoreError), SqlAlchemyReconciliationUnitOfWork() as uow:
        uow.repositories.members.add(make_member(1, "Other"))
        uow.flush()

    with SqlAlchemyReconciliationUnitOfWork() as uow:
        assert len(uow.repositories.members.list_for_calendar(CALENDAR)) == 1


def _seed(factory: Callable[[], SqlAlchemyReconciliationUnitOfWork], count: int) -> list:
    members = members_for(count)
    with factory() as uow:
        for member in members:
            uow.repositories.members.add(member)
        uow.repositories.allotments.add(make_allotment(2))
        uow.commit()
    return members


def test_workflow_commits_through_sqlite(
    sqlite_unit_of_work: Callable[[], SqlAlchemyReconciliationUnitOfWork],
) -> None:
    members = _seed(sqlite_unit_of_work, 3)
    workflow = ReconciliationWorkflow(sqlite_unit_of_work, clock=lambda: NOW)
    session = workflow.start(
        CALENDAR, [make_record(member, minutes=i) for i, member in enumerate(members)]
    )
    for _ in range(2):
        workflow.advance(session)
    assert session.current_stage is ImportStage.OVER_ALLOTMENT
    assert session.stage_data.over_allotment.dates[DAY].over_allotment_count == 1
    for _ in range(2):
        workflow.advance(session)

    result = workflow.commit(session, actor="ops")

    assert result.success
    assert result.created == 3
    with sqlite_unit_of_work() as uow:
        rows = uow.repositories.leave_requests.list_for_date(CALENDAR, DAY)
        assert {row.id for row in rows} == {
            request_id_for(session.session_id, index) for index in range(3)
        }
        waitlisted = [row for row in rows if row.status is RequestStatus.WAITLISTED]
        assert [(row.member_id, row.waitlist_position) for row in waitlisted] == [
            (members[2].id, 1)
        ]
        audit = uow.repositories.audit.list_for_target(waitlisted[0].id)
        assert [entry.session_id for entry in audit] == [session.session_id]
        assert uow.repositories.date_locks.acquire(CALENDAR, DAY) == 2


def test_concurrent_write_is_detected_through_sqlite(
    sqlite_unit_of_work: Callable[[], SqlAlchemyReconciliationUnitOfWork],
) -> None:
    members = _seed(sqlite_unit_of_work, 2)
    workflow = ReconciliationWorkflow(sqlite_unit_of_work, clock=lambda: NOW)
    session = workflow.start(CALENDAR, [make_record(member) for member in members])
    for _ in range(4):
        workflow.advance(session)

    with sqlite_unit_of_work() as uow:
        allotment = uow.repositories.allotments.get_for_date(CALENDAR, DAY)
        assert allotment is not None
        allotment.override(1, actor="someone-else", at=NOW)
        uow.commit()

    result = workflow.commit(session, actor="ops")

    assert not result.success
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.leave_requests.list_for_date(CALENDAR, DAY) == []
