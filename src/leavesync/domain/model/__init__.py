"""Public domain model surface."""

from __future__ import annotations

from leavesync.domain.model.audit import AuditEntry
from leavesync.domain.model.entity import Entity, new_id
from leavesync.domain.model.enums import (
    STAGE_ORDER,
    AssignedStatus,
    AuditAction,
    ConflictAction,
    ConflictKind,
    ConflictSeverity,
    DuplicateDecision,
    ImportStage,
    LeaveType,
    MatchStatus,
    RecordType,
    RequestStatus,
    StatedStatus,
)
from leavesync.domain.model.item import ImportItem, ImportRecord, MemberCandidate, MemberMatch
from leavesync.domain.model.member import Member, MemberRef
from leavesync.domain.model.request import Allotment, LeaveRequest, RequestKey

__all__ = [  # noqa: RUF022
    # base
    "Entity",
    "new_id",
    # store records
    "Member",
    "MemberRef",
    "LeaveRequest",
    "RequestKey",
    "Allotment",
    "AuditEntry",
    # import
    "ImportRecord",
    "ImportItem",
    "MemberCandidate",
    "MemberMatch",
    # enums
    "STAGE_ORDER",
    "AssignedStatus",
    "AuditAction",
    "ConflictAction",
    "ConflictKind",
    "ConflictSeverity",
    "DuplicateDecision",
    "ImportStage",
    "LeaveType",
    "MatchStatus",
    "RecordType",
    "RequestStatus",
    "StatedStatus",
]
