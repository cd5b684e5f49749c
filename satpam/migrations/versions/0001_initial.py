"""Initial patrol schema: locations, guards, schedules, inspection events, audit

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 08:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


apar_condition = postgresql.ENUM(
    "GOOD",
    "DAMAGED",
    "NEEDS_MAINTENANCE",
    name="apar_condition",
    create_type=False,
)

audit_actor_type = postgresql.ENUM(
    "GUARD",
    "SUPERVISOR",
    "ADMIN",
    "SYSTEM",
    name="audit_actor_type",
    create_type=False,
)


def _timestamp_column(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    bind = op.get_bind()
    apar_condition.create(bind, checkfirst=True)
    audit_actor_type.create(bind, checkfirst=True)

    op.create_table(
        "locations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("zone", sa.String(length=100), nullable=True),
        sa.Column("qr_code_data", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_locations_name"), "locations", ["name"], unique=False)
    op.create_index(op.f("ix_locations_zone"), "locations", ["zone"], unique=False)
    op.create_index(op.f("ix_locations_qr_code_data"), "locations", ["qr_code_data"], unique=True)

    op.create_table(
        "guard_profiles",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=False, server_default=sa.text("'satpam'")),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "schedule_assignments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("guard_id", sa.String(length=36), nullable=False),
        sa.Column("location_id", sa.String(length=36), nullable=False),
        sa.Column("schedule_date", sa.Date(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        _timestamp_column("created_at"),
        sa.ForeignKeyConstraint(["guard_id"], ["guard_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "guard_id",
            "location_id",
            "schedule_date",
            name="uq_schedule_assignments_guard_location_date",
        ),
    )
    op.create_index(
        "ix_schedule_assignments_date_guard",
        "schedule_assignments",
        ["schedule_date", "guard_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_schedule_assignments_location_id"),
        "schedule_assignments",
        ["location_id"],
        unique=False,
    )

    op.create_table(
        "check_area_reports",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("guard_id", sa.String(length=36), nullable=False),
        sa.Column("location_id", sa.String(length=36), nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("photo_url", sa.String(length=2048), nullable=True),
        sa.Column("note", sa.String(length=1000), nullable=True),
        _timestamp_column("created_at"),
        sa.ForeignKeyConstraint(["guard_id"], ["guard_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_check_area_reports_guard_ts", "check_area_reports", ["guard_id", "ts_utc"], unique=False)
    op.create_index(op.f("ix_check_area_reports_location_id"), "check_area_reports", ["location_id"], unique=False)
    op.create_index(op.f("ix_check_area_reports_ts_utc"), "check_area_reports", ["ts_utc"], unique=False)

    op.create_table(
        "apar_checks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("guard_id", sa.String(length=36), nullable=False),
        sa.Column("location_id", sa.String(length=36), nullable=False),
        sa.Column("apar_code", sa.String(length=255), nullable=False),
        sa.Column("condition", apar_condition, nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("photo_url", sa.String(length=2048), nullable=True),
        _timestamp_column("created_at"),
        sa.ForeignKeyConstraint(["guard_id"], ["guard_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_apar_checks_guard_ts", "apar_checks", ["guard_id", "ts_utc"], unique=False)
    op.create_index(op.f("ix_apar_checks_location_id"), "apar_checks", ["location_id"], unique=False)
    op.create_index(op.f("ix_apar_checks_ts_utc"), "apar_checks", ["ts_utc"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        _timestamp_column("ts_utc"),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_logs_ts_utc"), "audit_logs", ["ts_utc"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_audit_logs_ts_utc"), table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index(op.f("ix_apar_checks_ts_utc"), table_name="apar_checks")
    op.drop_index(op.f("ix_apar_checks_location_id"), table_name="apar_checks")
    op.drop_index("ix_apar_checks_guard_ts", table_name="apar_checks")
    op.drop_table("apar_checks")
    op.drop_index(op.f("ix_check_area_reports_ts_utc"), table_name="check_area_reports")
    op.drop_index(op.f("ix_check_area_reports_location_id"), table_name="check_area_reports")
    op.drop_index("ix_check_area_reports_guard_ts", table_name="check_area_reports")
    op.drop_table("check_area_reports")
    op.drop_index(op.f("ix_schedule_assignments_location_id"), table_name="schedule_assignments")
    op.drop_index("ix_schedule_assignments_date_guard", table_name="schedule_assignments")
    op.drop_table("schedule_assignments")
    op.drop_table("guard_profiles")
    op.drop_index(op.f("ix_locations_qr_code_data"), table_name="locations")
    op.drop_index(op.f("ix_locations_zone"), table_name="locations")
    op.drop_index(op.f("ix_locations_name"), table_name="locations")
    op.drop_table("locations")
    audit_actor_type.drop(op.get_bind(), checkfirst=True)
    apar_condition.drop(op.get_bind(), checkfirst=True)
