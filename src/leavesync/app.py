"""Application orchestration entry points."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from leavesync.adapters.import_file import load_import_file
from leavesync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    is_started,
    startup,
)
from leavesync.adapters.staging_store import JsonStagingStore
from leavesync.config import get_reconcile_config, get_storage_config
from leavesync.domain.model import Allotment, AuditEntry, Member
from leavesync.domain.staging import ReconciliationWorkflow
from leavesync.domain.waitlist import ProposedPosition, WaitlistService

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date
    from pathlib import Path

    from leavesync.config import ReconcileConfig, StorageConfig
    from leavesync.domain.ports import UnitOfWorkFactory
    from leavesync.domain.staging import StagedSession
    from leavesync.domain.waitlist import WaitlistResetResult, WaitlistValidation


log = getLogger(__name__)

MANUAL_ALLOTMENT_REASON = "allotment set manually"


def initialise_database(*, database_uri: str | None = None) -> None:
    """Start the SQLAlchemy adapter once per process; migrations run on start."""

    if not is_started():
        startup(database_uri=database_uri)


def build_workflow(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconcileConfig | None = None,
) -> ReconciliationWorkflow:
    if unit_of_work_factory is None:
        initialise_database()
    return ReconciliationWorkflow(
        unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork,
        config=config or get_reconcile_config(),
    )


def build_staging_store(storage: StorageConfig | None = None) -> JsonStagingStore:
    storage_config = storage or get_storage_config()
    return JsonStagingStore(storage_config.staging_dir())


def stage_import(
    path: Path,
    *,
    workflow: ReconciliationWorkflow,
    store: JsonStagingStore,
) -> StagedSession:
    """Read an import file, open a staged session for it and persist the session."""

    calendar_id, records = load_import_file(path)
    session = workflow.start(calendar_id, records)
    store.save(session)
    return session


def add_member(
    *,
    pin_number: int,
    first_name: str,
    last_name: str,
    calendar_id: str | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Member:
    if unit_of_work_factory is None:
        initialise_database()
    factory = unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork
    member = Member(
        pin_number=pin_number,
        first_name=first_name,
        last_name=last_name,
        calendar_id=calendar_id,
    )
    with factory() as uow:
        uow.repositories.members.add(member)
        uow.commit()
    log.info("Created member %s (pin %d)", member.id, pin_number)
    return member


def set_allotment(
    calendar_id: str,
    allotment_date: date,
    value: int,
    *,
    actor: str,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Allotment:
    """Create or override the allotment of one date, with an audit entry."""

    if unit_of_work_factory is None:
        initialise_database()
    factory = unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork
    now = datetime.now(tz=UTC)
    with factory() as uow:
        repositories = uow.repositories
        repositories.date_locks.acquire(calendar_id, allotment_date)
        allotment = repositories.allotments.get_for_date(calendar_id, allotment_date)
        before = allotment.snapshot() if allotment is not None else None
        if allotment is None:
            allotment = Allotment(
                calendar_id=calendar_id, allotment_date=allotment_date, max_allotment=value
            )
            repositories.allotments.add(allotment)
        else:
            allotment.override(value, actor=actor, at=now, reason=MANUAL_ALLOTMENT_REASON)
        repositories.audit.add(
            AuditEntry.for_record(
                allotment, before=before, actor=actor, at=now, reason=MANUAL_ALLOTMENT_REASON
            )
        )
        uow.commit()
    log.info("Allotment for %s on %s set to %d", calendar_id, allotment_date, value)
    return allotment


def reset_waitlist(
    calendar_id: str,
    request_date: date,
    *,
    actor: str,
    preserve_order: bool = True,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> WaitlistResetResult:
    if unit_of_work_factory is None:
        initialise_database()
    service = WaitlistService(unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork)
    return service.reset(calendar_id, request_date, actor=actor, preserve_order=preserve_order)


def validate_waitlist(
    calendar_id: str,
    request_date: date,
    positions: Sequence[int],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> WaitlistValidation:
    """Check proposed waitlist positions, numbered by their order, against the store."""

    if unit_of_work_factory is None:
        initialise_database()
    service = WaitlistService(unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork)
    proposed = [
        ProposedPosition(item_id=index, position=position)
        for index, position in enumerate(positions)
    ]
    return service.validate(calendar_id, request_date, proposed)
