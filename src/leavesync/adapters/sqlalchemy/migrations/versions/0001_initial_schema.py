"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

LEAVE_TYPES = ("PLD", "SDV")
REQUEST_STATUSES = (
    "PENDING",
    "APPROVED",
    "DENIED",
    "WAITLISTED",
    "CANCELLATION_PENDING",
    "CANCELLED",
    "TRANSFERRED",
)
RECORD_TYPES = ("MEMBER", "LEAVE_REQUEST", "ALLOTMENT", "AUDIT_ENTRY")
AUDIT_ACTIONS = ("CREATE", "UPDATE")


def upgrade() -> None:
    op.create_table(
        "member",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("pin_number", sa.Integer(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("calendar_id", sa.String(), nullable=True),
        sa.Column("deleted", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_member")),
        sa.UniqueConstraint("pin_number", name=op.f("uq_member_pin_number")),
    )
    with op.batch_alter_table("member") as batch_op:
        batch_op.create_index(op.f("ix_member_calendar_id"), ["calendar_id"], unique=False)

    op.create_table(
        "leave_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("calendar_id", sa.String(), nullable=False),
        sa.Column("member_id", sa.Uuid(), nullable=False),
        sa.Column("request_date", sa.Date(), nullable=False),
        sa.Column(
            "leave_type", sa.Enum(*LEAVE_TYPES, name="leavetype", native_enum=False), nullable=False
        ),
        sa.Column(
            "status",
            sa.Enum(*REQUEST_STATUSES, name="requeststatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("waitlist_position", sa.Integer(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("import_source", sa.String(), nullable=True),
        sa.Column("imported_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(
            ["member_id"], ["member.id"], name=op.f("fk_leave_request_member_id_member")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_leave_request")),
    )
    with op.batch_alter_table("leave_request") as batch_op:
        batch_op.create_index(
            "ix_leave_request_calendar_date", ["calendar_id", "request_date"], unique=False
        )
        batch_op.create_index(
            "ix_leave_request_member_date",
            ["member_id", "request_date", "leave_type"],
            unique=False,
        )

    op.create_table(
        "allotment",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("calendar_id", sa.String(), nullable=False),
        sa.Column("allotment_date", sa.Date(), nullable=False),
        sa.Column("max_allotment", sa.Integer(), nullable=False),
        sa.Column("is_override", sa.Boolean(), nullable=False),
        sa.Column("override_by", sa.String(), nullable=True),
        sa.Column("override_reason", sa.String(), nullable=True),
        sa.Column("override_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_allotment")),
    )
    with op.batch_alter_table("allotment") as batch_op:
        batch_op.create_index(
            "ix_allotment_calendar_date", ["calendar_id", "allotment_date"], unique=True
        )

    op.create_table(
        "audit_entry",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "target_type",
            sa.Enum(*RECORD_TYPES, name="recordtype", native_enum=False),
            nullable=False,
        ),
        sa.Column("target_id", sa.Uuid(), nullable=False),
        sa.Column(
            "action", sa.Enum(*AUDIT_ACTIONS, name="auditaction", native_enum=False), nullable=False
        ),
        sa.Column("actor", sa.String(), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("session_id", sa.Uuid(), nullable=True),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_entry")),
    )
    with op.batch_alter_table("audit_entry") as batch_op:
        batch_op.create_index(op.f("ix_audit_entry_target_id"), ["target_id"], unique=False)
        batch_op.create_index(op.f("ix_audit_entry_session_id"), ["session_id"], unique=False)

    op.create_table(
        "date_lock",
        sa.Column("calendar_id", sa.String(), nullable=False),
        sa.Column("lock_date", sa.Date(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("calendar_id", "lock_date", name=op.f("pk_date_lock")),
    )


def downgrade() -> None:
    op.drop_table("date_lock")
    with op.batch_alter_table("audit_entry") as batch_op:
        batch_op.drop_index(op.f("ix_audit_entry_session_id"))
        batch_op.drop_index(op.f("ix_audit_entry_target_id"))
    op.drop_table("audit_entry")
    with op.batch_alter_table("allotment") as batch_op:
        batch_op.drop_index("ix_allotment_calendar_date")
    op.drop_table("allotment")
    with op.batch_alter_table("leave_request") as batch_op:
        batch_op.drop_index("ix_leave_request_member_date")
        batch_op.drop_index("ix_leave_request_calendar_date")
    op.drop_table("leave_request")
    with op.batch_alter_table("member") as batch_op:
        batch_op.drop_index(op.f("ix_member_calendar_id"))
    op.drop_table("member")
