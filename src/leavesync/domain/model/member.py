"""Members of the operational store and the value bound to import items."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar
from uuid import UUID  # noqa: TC003

from leavesync.domain.model.entity import Entity
from leavesync.domain.model.enums import RecordType


@dataclass(frozen=True, slots=True)
class MemberRef:
    """Immutable reference to a member, safe to keep inside a staged session."""

    member_id: UUID
    pin_number: int
    first_name: str
    last_name: str

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(eq=False, kw_only=True)
class Member(Entity):
    RECORD_TYPE: ClassVar[RecordType] = RecordType.MEMBER

    pin_number: int
    first_name: str
    last_name: str
    calendar_id: str | None = None
    deleted: bool = False

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return not self.deleted

    def to_ref(self) -> MemberRef:
        return MemberRef(
            member_id=self.id,
            pin_number=self.pin_number,
            first_name=self.first_name,
            last_name=self.last_name,
        )
