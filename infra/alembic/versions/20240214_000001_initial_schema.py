"""Initial valet schema."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20240214_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    gates = op.create_table(
        "gates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=50), nullable=False, unique=True),
    )

    op.create_table(
        "valet_tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("car_info", sa.String(length=500), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "sensor_data",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("valet_tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("ble", sa.JSON(), nullable=True),
        sa.Column("wifi", sa.JSON(), nullable=True),
        sa.Column("imu", sa.JSON(), nullable=True),
        sa.Column("gps", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_sensor_data_ticket_id", "sensor_data", ["ticket_id"])

    op.create_table(
        "dispatches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "ticket_id",
            sa.Integer(),
            sa.ForeignKey("valet_tickets.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("gate", sa.String(length=50), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("dispatched_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "ticket_audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("valet_tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("from_status", sa.String(length=50), nullable=True),
        sa.Column("to_status", sa.String(length=50), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_ticket_audit_logs_ticket_id", "ticket_audit_logs", ["ticket_id"])

    op.bulk_insert(gates, [{"name": name} for name in ("A", "B", "C", "D")])


def downgrade() -> None:
    op.drop_index("ix_ticket_audit_logs_ticket_id", table_name="ticket_audit_logs")
    op.drop_table("ticket_audit_logs")
    op.drop_table("dispatches")
    op.drop_index("ix_sensor_data_ticket_id", table_name="sensor_data")
    op.drop_table("sensor_data")
    op.drop_table("valet_tickets")
    op.drop_table("gates")
