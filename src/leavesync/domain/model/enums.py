"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class LeaveType(StrEnum):
    PLD = "PLD"
    SDV = "SDV"


class RequestStatus(StrEnum):
    """Lifecycle of a persisted leave request."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    WAITLISTED = "waitlisted"
    CANCELLATION_PENDING = "cancellation_pending"
    CANCELLED = "cancelled"
    TRANSFERRED = "transferred"


class StatedStatus(StrEnum):
    """Status as stated by the calendar export."""

    APPROVED = "approved"
    WAITLISTED = "waitlisted"

    def as_request_status(self) -> RequestStatus:
        return RequestStatus(self.value)


class AssignedStatus(StrEnum):
    """Status computed for an import item by the position algorithm."""

    APPROVED = "approved"
    WAITLISTED = "waitlisted"
    SKIPPED = "skipped"


class MatchStatus(StrEnum):
    MATCHED = "matched"
    MULTIPLE_MATCHES = "multiple_matches"
    UNMATCHED = "unmatched"


class RecordType(StrEnum):
    """Discriminator for audit records."""

    MEMBER = "member"
    LEAVE_REQUEST = "leave_request"
    ALLOTMENT = "allotment"
    AUDIT_ENTRY = "audit_entry"


class AuditAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"


class ImportStage(StrEnum):
    """Stages of a staged import, in workflow order."""

    UNMATCHED = "unmatched"
    DUPLICATES = "duplicates"
    OVER_ALLOTMENT = "over_allotment"
    DB_RECONCILIATION = "db_reconciliation"
    FINAL_REVIEW = "final_review"

    @property
    def order(self) -> int:
        return STAGE_ORDER.index(self)

    @property
    def next_stage(self) -> ImportStage | None:
        position = self.order + 1
        return STAGE_ORDER[position] if position < len(STAGE_ORDER) else None

    @property
    def earlier_stages(self) -> tuple[ImportStage, ...]:
        return STAGE_ORDER[: self.order]

    @property
    def later_stages(self) -> tuple[ImportStage, ...]:
        return STAGE_ORDER[self.order + 1 :]


STAGE_ORDER: tuple[ImportStage, ...] = tuple(ImportStage)


class DuplicateDecision(StrEnum):
    SKIP = "skip"
    IMPORT = "import"


class ConflictKind(StrEnum):
    STATUS = "status"
    ORDERING = "ordering"


class ConflictSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConflictAction(StrEnum):
    """Resolution chosen for a store conflict: keep it, or overwrite to a status."""

    KEEP = "keep"
    APPROVED = "approved"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"
    TRANSFERRED = "transferred"

    @property
    def target_status(self) -> RequestStatus | None:
        if self is ConflictAction.KEEP:
            return None
        return RequestStatus(self.value)
