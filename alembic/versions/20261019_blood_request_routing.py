"""Create organizations, blood stock and blood request tables.

Revision ID: 20261019_blood_routing
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.sql import func
from sqlalchemy.dialects import postgresql


revision = "20261019_blood_routing"
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names.
BLOOD_GROUPS = ("A_POS", "A_NEG", "B_POS", "B_NEG", "AB_POS", "AB_NEG", "O_POS", "O_NEG")
URGENCIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW")
REQUEST_STATUSES = (
    "PENDING",
    "ACCEPTED",
    "REJECTED",
    "PROCESSING",
    "FULFILLED",
    "COMPLETED",
    "CANCELLED",
)
AUDIT_ACTIONS = (
    "CREATE",
    "UPDATE",
    "ACCEPT",
    "REJECT",
    "APPROVE",
    "FULFILL",
    "CANCEL",
    "DELETE",
    "STOCK_ADJUST",
)


def _uuid_type(bind):
    if bind.dialect.name == "postgresql":
        return postgresql.UUID(as_uuid=True)
    return sa.String(36)


def _blood_group_type(bind, create_type: bool = True):
    # blood_stock and blood_requests share one postgres enum type.
    if bind.dialect.name == "postgresql":
        return postgresql.ENUM(*BLOOD_GROUPS, name="bloodgroup", create_type=create_type)
    return sa.Enum(*BLOOD_GROUPS, name="bloodgroup")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    if "organizations" not in tables:
        op.create_table(
            "organizations",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column(
                "org_type",
                sa.Enum("HOSPITAL", "BLOOD_BANK", "NGO", name="organizationtype"),
                nullable=False,
            ),
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("code", sa.String(length=32), nullable=True),
            sa.Column("address", sa.String(length=256), nullable=True),
            sa.Column("city", sa.String(length=64), nullable=True),
            sa.Column("phone", sa.String(length=32), nullable=True),
            sa.Column("email", sa.String(length=128), nullable=True),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.UniqueConstraint("code", name="uq_organizations_code"),
        )

    if "users" not in tables:
        op.create_table(
            "users",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("username", sa.String(length=64), nullable=False),
            sa.Column("role", sa.String(length=32), nullable=False),
            sa.Column("organization_id", _uuid_type(bind), nullable=True),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("force_password_change", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"]),
            sa.UniqueConstraint("username", name="uq_users_username"),
        )

    if "blood_stock" not in tables:
        op.create_table(
            "blood_stock",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("blood_bank_id", _uuid_type(bind), nullable=False),
            sa.Column("blood_group", _blood_group_type(bind), nullable=False),
            sa.Column("units", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_updated", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
            sa.ForeignKeyConstraint(["blood_bank_id"], ["organizations.id"]),
            sa.UniqueConstraint("blood_bank_id", "blood_group", name="uq_blood_stock_bank_group"),
            sa.CheckConstraint("units >= 0", name="ck_blood_stock_units_non_negative"),
        )

    if "blood_bank_statistics" not in tables:
        op.create_table(
            "blood_bank_statistics",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("blood_bank_id", _uuid_type(bind), nullable=False),
            sa.Column("total_hospital_requests_fulfilled", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_units_distributed", sa.Integer(), nullable=False, server_default="0"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["blood_bank_id"], ["organizations.id"]),
            sa.UniqueConstraint("blood_bank_id", name="uq_blood_bank_statistics_bank"),
        )

    if "blood_requests" not in tables:
        op.create_table(
            "blood_requests",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("hospital_id", _uuid_type(bind), nullable=False),
            sa.Column("blood_bank_id", _uuid_type(bind), nullable=False),
            sa.Column("blood_group", _blood_group_type(bind, create_type=False), nullable=False),
            sa.Column("units_required", sa.Integer(), nullable=False),
            sa.Column("urgency", sa.Enum(*URGENCIES, name="urgency"), nullable=False),
            sa.Column("priority", sa.JSON(), nullable=True),
            sa.Column("patient_age", sa.Integer(), nullable=True),
            sa.Column("patient_condition", sa.Text(), nullable=True),
            sa.Column("department", sa.String(length=64), nullable=True),
            sa.Column("medical_reason", sa.Text(), nullable=True),
            sa.Column("hospital_notes", sa.Text(), nullable=True),
            sa.Column(
                "status",
                sa.Enum(*REQUEST_STATUSES, name="requeststatus"),
                nullable=False,
                server_default="PENDING",
            ),
            sa.Column("requires_admin_approval", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("admin_approved_by", sa.String(length=64), nullable=True),
            sa.Column("admin_approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("admin_remarks", sa.Text(), nullable=True),
            sa.Column("blood_bank_response", sa.Text(), nullable=True),
            sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("processing_started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("processing_staff_id", sa.String(length=64), nullable=True),
            sa.Column("units_fulfilled", sa.Integer(), nullable=True),
            sa.Column("fulfillment_details", sa.JSON(), nullable=True),
            sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.Column("rejected_by", sa.String(length=64), nullable=True),
            sa.Column("cancellation_reason", sa.Text(), nullable=True),
            sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["hospital_id"], ["organizations.id"]),
            sa.ForeignKeyConstraint(["blood_bank_id"], ["organizations.id"]),
        )
        op.create_index("ix_blood_requests_bank_status", "blood_requests", ["blood_bank_id", "status"])
        op.create_index("ix_blood_requests_hospital", "blood_requests", ["hospital_id"])

    if "request_communication_logs" not in tables:
        op.create_table(
            "request_communication_logs",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("request_id", _uuid_type(bind), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("author", sa.String(length=64), nullable=False, server_default="SYSTEM"),
            sa.Column("timestamp", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
            sa.ForeignKeyConstraint(["request_id"], ["blood_requests.id"], ondelete="CASCADE"),
        )

    if "audit_events" not in tables:
        op.create_table(
            "audit_events",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("actor", sa.String(length=64), nullable=False),
            sa.Column("action", sa.Enum(*AUDIT_ACTIONS, name="auditaction"), nullable=False),
            sa.Column("entity_type", sa.String(length=64), nullable=False),
            sa.Column("entity_id", sa.String(length=64), nullable=False),
            sa.Column("request_id", sa.String(length=64), nullable=False),
            sa.Column("ip_address", sa.String(length=64), nullable=False),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    for table in (
        "audit_events",
        "request_communication_logs",
        "blood_requests",
        "blood_bank_statistics",
        "blood_stock",
        "users",
        "organizations",
    ):
        if table in tables:
            op.drop_table(table)

    if bind.dialect.name == "postgresql":
        for enum_name in ("auditaction", "requeststatus", "urgency", "bloodgroup", "organizationtype"):
            op.execute(f"DROP TYPE IF EXISTS {enum_name}")
