"""Identity building block for persisted records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from leavesync.domain.model.enums import RecordType


def new_id() -> UUID:
    return uuid4()


@dataclass(eq=False, kw_only=True)
class Entity:
    """Internal identity exists immediately in the domain."""

    id: UUID = field(default_factory=new_id)

    # class-level discriminator; subclasses must override
    RECORD_TYPE: ClassVar[RecordType]

    @property
    def record_type(self) -> RecordType:
        return self.RECORD_TYPE
