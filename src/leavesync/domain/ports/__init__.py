"""Domain port definitions."""

from __future__ import annotations

from leavesync.domain.ports.persistence import (
    AllotmentRepository,
    AuditRepository,
    DateLockRepository,
    LeaveRequestRepository,
    MemberRepository,
    Repository,
)
from leavesync.domain.ports.unit_of_work import (
    ReconciliationRepositories,
    ReconciliationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    "AllotmentRepository",
    "AuditRepository",
    "DateLockRepository",
    "LeaveRequestRepository",
    "MemberRepository",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "Repository",
    "RepositoryCollection",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
