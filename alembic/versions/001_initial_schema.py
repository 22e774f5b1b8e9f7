"""Initial local store schema: tenant mirror, meters, reading queue, sync log.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create tenant, meter, meter_reading and sync_log tables."""
    op.create_table(
        "tenant",
        sa.Column("tenant_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("url", sa.String(255), nullable=True),
        sa.Column("street", sa.String(255), nullable=True),
        sa.Column("street2", sa.String(255), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("zip", sa.String(20), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("api_key", sa.String(255), nullable=True),
        sa.Column("sync_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "meter",
        sa.Column("meter_id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, nullable=False),
        sa.Column("device_id", sa.String(100), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("port", sa.Integer, nullable=True),
        sa.Column("meter_element_id", sa.Integer, nullable=True),
        sa.Column("element", sa.String(50), nullable=True),
    )
    op.create_index("ix_meter_tenant_id", "meter", ["tenant_id"])

    op.create_table(
        "meter_reading",
        sa.Column("meter_reading_id", sa.Integer, primary_key=True),
        sa.Column("tenant_id", sa.Integer, nullable=False),
        sa.Column("meter_id", sa.Integer, nullable=False),
        sa.Column("meter_element_id", sa.Integer, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("active_energy", sa.Float, nullable=True),
        sa.Column("active_energy_export", sa.Float, nullable=True),
        sa.Column("reactive_energy", sa.Float, nullable=True),
        sa.Column("power", sa.Float, nullable=True),
        sa.Column("current", sa.Float, nullable=True),
        sa.Column("voltage_p_n", sa.Float, nullable=True),
        sa.Column("power_factor", sa.Float, nullable=True),
        sa.Column("frequency", sa.Float, nullable=True),
        sa.Column("is_synchronized", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("sync_status", sa.String(20), nullable=False, server_default="idle"),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
    )

    # Queue scan: unsynchronized readings, oldest first
    op.create_index(
        "ix_meter_reading_queue", "meter_reading", ["is_synchronized", "created_at"]
    )
    op.create_index("ix_meter_reading_tenant_id", "meter_reading", ["tenant_id"])

    op.create_table(
        "sync_log",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("operation_type", sa.String(20), nullable=False),
        sa.Column("tenant_id", sa.Integer, nullable=True),
        sa.Column("batch_size", sa.Integer, nullable=False, server_default="0"),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "synced_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_sync_log_synced_at", "sync_log", ["synced_at"])
    op.create_index(
        "ix_sync_log_operation_synced_at", "sync_log", ["operation_type", "synced_at"]
    )


def downgrade() -> None:
    """Drop all local store tables."""
    op.drop_index("ix_sync_log_operation_synced_at", table_name="sync_log")
    op.drop_index("ix_sync_log_synced_at", table_name="sync_log")
    op.drop_table("sync_log")

    op.drop_index("ix_meter_reading_tenant_id", table_name="meter_reading")
    op.drop_index("ix_meter_reading_queue", table_name="meter_reading")
    op.drop_table("meter_reading")

    op.drop_index("ix_meter_tenant_id", table_name="meter")
    op.drop_table("meter")

    op.drop_table("tenant")
