"""SQLAlchemy mapping metadata for the operational store."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from leavesync.domain.model import (
    Allotment,
    AuditAction,
    AuditEntry,
    LeaveRequest,
    LeaveType,
    Member,
    RecordType,
    RequestStatus,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

member_table = Table(
    "member",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("pin_number", Integer, nullable=False, unique=True),
    Column("first_name", String, nullable=False),
    Column("last_name", String, nullable=False),
    Column("calendar_id", String, nullable=True, index=True),
    Column("deleted", Boolean, nullable=False, default=False),
)

leave_request_table = Table(
    "leave_request",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("calendar_id", String, nullable=False),
    Column("member_id", UUIDColumnType, ForeignKey("member.id"), nullable=False),
    Column("request_date", Date, nullable=False),
    Column("leave_type", Enum(LeaveType, native_enum=False), nullable=False),
    Column("status", Enum(RequestStatus, native_enum=False), nullable=False),
    Column("waitlist_position", Integer, nullable=True),
    Column("requested_at", UTCDateTime(), nullable=True),
    Column("import_source", String, nullable=True),
    Column("imported_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    Column("updated_by", String, nullable=True),
    Index("ix_leave_request_calendar_date", "calendar_id", "request_date"),
    Index("ix_leave_request_member_date", "member_id", "request_date", "leave_type"),
)

allotment_table = Table(
    "allotment",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("calendar_id", String, nullable=False),
    Column("allotment_date", Date, nullable=False),
    Column("max_allotment", Integer, nullable=False),
    Column("is_override", Boolean, nullable=False, default=False),
    Column("override_by", String, nullable=True),
    Column("override_reason", String, nullable=True),
    Column("override_at", UTCDateTime(), nullable=True),
    Index("ix_allotment_calendar_date", "calendar_id", "allotment_date", unique=True),
)

audit_entry_table = Table(
    "audit_entry",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("target_type", Enum(RecordType, native_enum=False), nullable=False),
    Column("target_id", UUIDColumnType, nullable=False, index=True),
    Column("action", Enum(AuditAction, native_enum=False), nullable=False),
    Column("actor", String, nullable=False),
    Column("before", JSON, nullable=True),
    Column("after", JSON, nullable=True),
    Column("session_id", UUIDColumnType, nullable=True, index=True),
    Column("reason", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
)

# Row per (calendar, date); selected FOR UPDATE and bumped to serialize writers.
date_lock_table = Table(
    "date_lock",
    mapper_registry.metadata,
    Column("calendar_id", String, primary_key=True),
    Column("lock_date", Date, primary_key=True),
    Column("version", Integer, nullable=False, default=0),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the store records."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Member, member_table)
    mapper_registry.map_imperatively(LeaveRequest, leave_request_table)
    mapper_registry.map_imperatively(Allotment, allotment_table)
    mapper_registry.map_imperatively(AuditEntry, audit_entry_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
