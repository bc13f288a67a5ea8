"""Audit records written alongside every mutated row."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID  # noqa: TC003

from leavesync.domain.model.entity import Entity
from leavesync.domain.model.enums import AuditAction, RecordType

if TYPE_CHECKING:
    from leavesync.domain.model.request import Allotment, LeaveRequest


@dataclass(eq=False, kw_only=True)
class AuditEntry(Entity):
    """Before/after image of one mutated row, attributed to an actor."""

    RECORD_TYPE: ClassVar[RecordType] = RecordType.AUDIT_ENTRY

    target_type: RecordType
    target_id: UUID
    action: AuditAction
    actor: str
    before: dict[str, object] | None = None
    after: dict[str, object] | None = None
    session_id: UUID | None = None
    reason: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @classmethod
    def for_record(
        cls,
        record: LeaveRequest | Allotment,
        *,
        before: dict[str, object] | None,
        actor: str,
        at: datetime,
        session_id: UUID | None = None,
        reason: str | None = None,
    ) -> AuditEntry:
        """Capture ``record`` as it is now; a missing ``before`` marks a creation."""

        return cls(
            target_type=record.record_type,
            target_id=record.id,
            action=AuditAction.CREATE if before is None else AuditAction.UPDATE,
            actor=actor,
            before=before,
            after=record.snapshot(),
            session_id=session_id,
            reason=reason,
            created_at=at,
        )
