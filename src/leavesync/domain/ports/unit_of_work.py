"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from leavesync.domain.ports.persistence import (
        AllotmentRepository,
        AuditRepository,
        DateLockRepository,
        LeaveRequestRepository,
        MemberRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def flush(self) -> None: ...


@dataclass(slots=True)
class ReconciliationRepositories(RepositoryCollection):
    """Repositories the staged import reads from and commits to."""

    members: MemberRepository
    leave_requests: LeaveRequestRepository
    allotments: AllotmentRepository
    audit: AuditRepository
    date_locks: DateLockRepository


type ReconciliationUnitOfWork = UnitOfWork[ReconciliationRepositories]
type UnitOfWorkFactory = Callable[[], ReconciliationUnitOfWork]
