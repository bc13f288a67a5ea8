"""Ports for reading and writing the operational store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from leavesync.domain.model import Allotment, AuditEntry, LeaveRequest, LeaveType, Member

if TYPE_CHECKING:
    from datetime import date
    from uuid import UUID


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent record store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class MemberRepository(Repository[Member], Protocol):
    """Persistence contract for members; staging and commit only read them."""

    def get(self, member_id: UUID) -> Member | None: ...

    def get_by_pin(self, pin_number: int) -> Member | None: ...

    def list_for_calendar(self, calendar_id: str) -> list[Member]:
        """Active members of the calendar plus members not yet assigned to one."""


@runtime_checkable
class LeaveRequestRepository(Repository[LeaveRequest], Protocol):
    """Persistence contract for leave requests."""

    def get(self, request_id: UUID) -> LeaveRequest | None: ...

    def get_by_key(
        self, calendar_id: str, member_id: UUID, request_date: date, leave_type: LeaveType
    ) -> LeaveRequest | None:
        """Newest request of the calendar for (member, date, leave type)."""

    def list_for_date(self, calendar_id: str, request_date: date) -> list[LeaveRequest]: ...

    def list_for_member_date(self, member_id: UUID, request_date: date) -> list[LeaveRequest]: ...


@runtime_checkable
class AllotmentRepository(Repository[Allotment], Protocol):
    """Persistence contract for per-date allotments."""

    def get_for_date(self, calendar_id: str, allotment_date: date) -> Allotment | None: ...

    def list_for_year(self, calendar_id: str, year: int) -> list[Allotment]: ...


@runtime_checkable
class AuditRepository(Repository[AuditEntry], Protocol):
    """Append-only audit trail."""

    def list_for_target(self, target_id: UUID) -> list[AuditEntry]: ...


@runtime_checkable
class DateLockRepository(Protocol):
    """Per-(calendar, date) write serialization."""

    def acquire(self, calendar_id: str, lock_date: date) -> int:
        """Lock the date for the rest of the unit of work and return its new version."""
        ...
