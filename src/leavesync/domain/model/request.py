"""Persisted leave requests and per-date allotments."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime  # noqa: TC003
from typing import ClassVar
from uuid import UUID  # noqa: TC003

from leavesync.domain.model.entity import Entity
from leavesync.domain.model.enums import LeaveType, RecordType, RequestStatus

type RequestKey = tuple[UUID, date, LeaveType]


@dataclass(eq=False, kw_only=True)
class LeaveRequest(Entity):
    """One leave-day request as stored in the operational store."""

    RECORD_TYPE: ClassVar[RecordType] = RecordType.LEAVE_REQUEST

    calendar_id: str
    member_id: UUID
    request_date: date
    leave_type: LeaveType
    status: RequestStatus
    waitlist_position: int | None = None
    requested_at: datetime | None = None
    import_source: str | None = None
    imported_at: datetime | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None

    @property
    def key(self) -> RequestKey:
        return (self.member_id, self.request_date, self.leave_type)

    @property
    def is_approved(self) -> bool:
        return self.status == RequestStatus.APPROVED

    @property
    def is_waitlisted(self) -> bool:
        return self.status == RequestStatus.WAITLISTED

    def change_status(
        self,
        status: RequestStatus,
        *,
        waitlist_position: int | None,
        actor: str,
        at: datetime,
    ) -> None:
        if status == RequestStatus.WAITLISTED and waitlist_position is None:
            raise ValueError("waitlisted requests need a waitlist position")
        self.status = status
        self.waitlist_position = waitlist_position if status == RequestStatus.WAITLISTED else None
        self.updated_at = at
        self.updated_by = actor

    def move_to_position(self, position: int, *, actor: str, at: datetime) -> None:
        if not self.is_waitlisted:
            raise ValueError("only waitlisted requests have a waitlist position")
        if position < 1:
            raise ValueError("waitlist positions start at 1")
        self.waitlist_position = position
        self.updated_at = at
        self.updated_by = actor

    def snapshot(self) -> dict[str, object]:
        return {
            "id": str(self.id),
            "calendar_id": self.calendar_id,
            "member_id": str(self.member_id),
            "request_date": self.request_date.isoformat(),
            "leave_type": self.leave_type.value,
            "status": self.status.value,
            "waitlist_position": self.waitlist_position,
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "import_source": self.import_source,
        }


@dataclass(eq=False, kw_only=True)
class Allotment(Entity):
    """Maximum number of approved requests for one calendar date."""

    RECORD_TYPE: ClassVar[RecordType] = RecordType.ALLOTMENT

    calendar_id: str
    allotment_date: date
    max_allotment: int
    is_override: bool = False
    override_by: str | None = None
    override_reason: str | None = None
    override_at: datetime | None = None

    @property
    def year(self) -> int:
        return self.allotment_date.year

    def override(self, value: int, *, actor: str, at: datetime, reason: str | None = None) -> None:
        if value < 0:
            raise ValueError("allotment cannot be negative")
        self.max_allotment = value
        self.is_override = True
        self.override_by = actor
        self.override_at = at
        self.override_reason = reason

    def snapshot(self) -> dict[str, object]:
        return {
            "id": str(self.id),
            "calendar_id": self.calendar_id,
            "allotment_date": self.allotment_date.isoformat(),
            "max_allotment": self.max_allotment,
            "is_override": self.is_override,
            "override_reason": self.override_reason,
        }
