"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import extract, insert, or_, select, update

from leavesync.adapters.sqlalchemy.mappings import (
    allotment_table,
    audit_entry_table,
    date_lock_table,
    leave_request_table,
    member_table,
)
from leavesync.domain.model import Allotment, AuditEntry, LeaveRequest, LeaveType, Member

if TYPE_CHECKING:
    from datetime import date
    from uuid import UUID

    from sqlalchemy.orm import Session


class SqlAlchemyMemberRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Member) -> None:
        self.session.add(entity)

    def get(self, member_id: UUID) -> Member | None:
        return self.session.get(Member, member_id)

    def get_by_pin(self, pin_number: int) -> Member | None:
        stmt = select(Member).where(member_table.c.pin_number == pin_number)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_calendar(self, calendar_id: str) -> list[Member]:
        stmt = (
            select(Member)
            .where(
                or_(member_table.c.calendar_id == calendar_id, member_table.c.calendar_id.is_(None))
            )
            .where(member_table.c.deleted.is_(False))
            .order_by(member_table.c.pin_number)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyLeaveRequestRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: LeaveRequest) -> None:
        self.session.add(entity)

    def get(self, request_id: UUID) -> LeaveRequest | None:
        return self.session.get(LeaveRequest, request_id)

    def get_by_key(
        self, calendar_id: str, member_id: UUID, request_date: date, leave_type: LeaveType
    ) -> LeaveRequest | None:
        stmt = (
            select(LeaveRequest)
            .where(leave_request_table.c.calendar_id == calendar_id)
            .where(leave_request_table.c.member_id == member_id)
            .where(leave_request_table.c.request_date == request_date)
            .where(leave_request_table.c.leave_type == leave_type)
            .order_by(leave_request_table.c.requested_at.desc(), leave_request_table.c.id)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_date(self, calendar_id: str, request_date: date) -> list[LeaveRequest]:
        stmt = (
            select(LeaveRequest)
            .where(leave_request_table.c.calendar_id == calendar_id)
            .where(leave_request_table.c.request_date == request_date)
            .order_by(leave_request_table.c.requested_at, leave_request_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())

    def list_for_member_date(self, member_id: UUID, request_date: date) -> list[LeaveRequest]:
        stmt = (
            select(LeaveRequest)
            .where(leave_request_table.c.member_id == member_id)
            .where(leave_request_table.c.request_date == request_date)
            .order_by(leave_request_table.c.requested_at, leave_request_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyAllotmentRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Allotment) -> None:
        self.session.add(entity)

    def get_for_date(self, calendar_id: str, allotment_date: date) -> Allotment | None:
        stmt = (
            select(Allotment)
            .where(allotment_table.c.calendar_id == calendar_id)
            .where(allotment_table.c.allotment_date == allotment_date)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_year(self, calendar_id: str, year: int) -> list[Allotment]:
        stmt = (
            select(Allotment)
            .where(allotment_table.c.calendar_id == calendar_id)
            .where(extract("year", allotment_table.c.allotment_date) == year)
            .order_by(allotment_table.c.allotment_date)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyAuditRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: AuditEntry) -> None:
        self.session.add(entity)

    def list_for_target(self, target_id: UUID) -> list[AuditEntry]:
        stmt = (
            select(AuditEntry)
            .where(audit_entry_table.c.target_id == target_id)
            .order_by(audit_entry_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyDateLockRepository:
    """Row locks on ``date_lock``; held until the surrounding transaction ends.

    SQLite ignores ``FOR UPDATE`` but serializes writers at the first write, which
    the version bump provides.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def acquire(self, calendar_id: str, lock_date: date) -> int:
        key = (
            (date_lock_table.c.calendar_id == calendar_id)
            & (date_lock_table.c.lock_date == lock_date)
        )
        stmt = select(date_lock_table.c.version).where(key).with_for_update()
        version = self.session.execute(stmt).scalar_one_or_none()
        if version is None:
            self.session.execute(
                insert(date_lock_table).values(
                    calendar_id=calendar_id, lock_date=lock_date, version=1
                )
            )
            return 1
        self.session.execute(update(date_lock_table).where(key).values(version=version + 1))
        return version + 1
