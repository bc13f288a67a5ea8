"""Normalized import records and the items a staged session tracks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime  # noqa: TC003

from leavesync.domain.model.enums import LeaveType, MatchStatus, StatedStatus
from leavesync.domain.model.member import MemberRef


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportRecord:
    """One leave-day request as delivered by the calendar normalizer."""

    first_name: str
    last_name: str
    request_date: date
    leave_type: LeaveType
    stated_status: StatedStatus
    requested_at: datetime
    pin_number: int | None = None
    provenance: str = "ical"

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True, slots=True)
class MemberCandidate:
    member: MemberRef
    confidence: float


@dataclass(frozen=True, slots=True, kw_only=True)
class MemberMatch:
    """Outcome of automatic member matching for one record."""

    status: MatchStatus
    member: MemberRef | None = None
    candidates: tuple[MemberCandidate, ...] = ()

    def __post_init__(self) -> None:
        if (self.status == MatchStatus.MATCHED) != (self.member is not None):
            raise ValueError("a matched result needs exactly one bound member")

    @classmethod
    def unmatched(cls) -> MemberMatch:
        return cls(status=MatchStatus.UNMATCHED)


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportItem:
    """Imported record plus its stable identity within a session.

    Items are never removed from a session; stages flag them by ``original_index``.
    """

    original_index: int
    record: ImportRecord
    match: MemberMatch = field(default_factory=MemberMatch.unmatched)

    @property
    def request_date(self) -> date:
        return self.record.request_date

    @property
    def leave_type(self) -> LeaveType:
        return self.record.leave_type

    @property
    def stated_status(self) -> StatedStatus:
        return self.record.stated_status

    @property
    def requested_at(self) -> datetime:
        return self.record.requested_at

    @property
    def display_name(self) -> str:
        return self.record.display_name

    @property
    def needs_member_resolution(self) -> bool:
        return self.match.status != MatchStatus.MATCHED
