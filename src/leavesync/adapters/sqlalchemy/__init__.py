"""SQLAlchemy adapter package for leavesync."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAllotmentRepository,
    SqlAlchemyAuditRepository,
    SqlAlchemyDateLockRepository,
    SqlAlchemyLeaveRequestRepository,
    SqlAlchemyMemberRepository,
)
from .unit_of_work import SqlAlchemyReconciliationUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyAllotmentRepository",
    "SqlAlchemyAuditRepository",
    "SqlAlchemyDateLockRepository",
    "SqlAlchemyLeaveRequestRepository",
    "SqlAlchemyMemberRepository",
    "SqlAlchemyReconciliationUnitOfWork",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "startup",
]
