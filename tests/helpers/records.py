"""Builders for import records, members and stored rows used across tests."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

from leavesync.domain.model import (
    Allotment,
    ImportItem,
    ImportRecord,
    LeaveRequest,
    LeaveType,
    MatchStatus,
    Member,
    MemberMatch,
    RequestStatus,
    StatedStatus,
)

CALENDAR = "cal-north"
DAY = date(2025, 3, 14)
BASE_TIME = datetime(2025, 1, 6, 8, 0, tzinfo=UTC)


def make_member(
    pin: int,
    first_name: str = "Alex",
    last_name: str | None = None,
    *,
    calendar_id: str | None = CALENDAR,
    deleted: bool = False,
) -> Member:
    return Member(
        pin_number=pin,
        first_name=first_name,
        last_name=last_name or f"Member{pin}",
        calendar_id=calendar_id,
        deleted=deleted,
    )


def make_record(
    member: Member | None = None,
    *,
    first_name: str | None = None,
    last_name: str | None = None,
    request_date: date = DAY,
    leave_type: LeaveType = LeaveType.PLD,
    stated_status: StatedStatus = StatedStatus.APPROVED,
    minutes: int = 0,
    pin_number: int | None = None,
) -> ImportRecord:
    """Record for ``member`` (matched by pin) or for free-text names."""

    return ImportRecord(
        first_name=first_name or (member.first_name if member else "Unknown"),
        last_name=last_name or (member.last_name if member else "Person"),
        request_date=request_date,
        leave_type=leave_type,
        stated_status=stated_status,
        requested_at=BASE_TIME + timedelta(minutes=minutes),
        pin_number=pin_number if pin_number is not None or member is None else member.pin_number,
    )


def make_item(index: int, record: ImportRecord, member: Member | None = None) -> ImportItem:
    match = (
        MemberMatch(status=MatchStatus.MATCHED, member=member.to_ref())
        if member is not None
        else MemberMatch.unmatched()
    )
    return ImportItem(original_index=index, record=record, match=match)


def make_request(
    member: Member,
    *,
    request_date: date = DAY,
    leave_type: LeaveType = LeaveType.PLD,
    status: RequestStatus = RequestStatus.APPROVED,
    waitlist_position: int | None = None,
    minutes: int = 0,
    calendar_id: str = CALENDAR,
) -> LeaveRequest:
    return LeaveRequest(
        calendar_id=calendar_id,
        member_id=member.id,
        request_date=request_date,
        leave_type=leave_type,
        status=status,
        waitlist_position=waitlist_position,
        requested_at=BASE_TIME - timedelta(days=1) + timedelta(minutes=minutes),
    )


def make_allotment(
    value: int, *, allotment_date: date = DAY, calendar_id: str = CALENDAR
) -> Allotment:
    return Allotment(calendar_id=calendar_id, allotment_date=allotment_date, max_allotment=value)
