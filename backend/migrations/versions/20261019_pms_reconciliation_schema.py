"""Pump registry, meter readings, daily PMS calculations and price history

Revision ID: 20261019_pms_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_pms_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "pump_configurations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("station_id", sa.Integer(), nullable=False),
        sa.Column("pms_product_id", sa.Integer(), nullable=False),
        sa.Column("pump_number", sa.String(32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("meter_capacity", sa.Numeric(12, 1), nullable=False),
        sa.Column("install_date", sa.Date(), nullable=False),
        sa.Column("last_calibration_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("status_notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_pump_configurations"),
        sa.UniqueConstraint("station_id", "pump_number", name="uq_pumps_station_number"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("pump_configurations", schema=None) as batch_op:
        batch_op.create_index("ix_pump_configurations_station_id", ["station_id"], unique=False)
        batch_op.create_index("ix_pumps_station_status", ["station_id", "status"], unique=False)

    op.create_table(
        "pump_meter_readings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pump_id", sa.Integer(), nullable=False),
        sa.Column("reading_date", sa.Date(), nullable=False),
        sa.Column("reading_type", sa.String(16), nullable=False),
        sa.Column("meter_value", sa.Numeric(12, 1), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_by", sa.String(64), nullable=False),
        sa.Column("is_estimated", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("estimation_method", sa.String(32), nullable=True),
        sa.Column("is_modified", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("original_value", sa.Numeric(12, 1), nullable=True),
        sa.Column("modified_by", sa.String(64), nullable=True),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(
            ["pump_id"], ["pump_configurations.id"],
            name="fk_pump_meter_readings_pump_id_pump_configurations",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_pump_meter_readings"),
        sa.UniqueConstraint("pump_id", "reading_date", "reading_type", name="uq_readings_pump_date_type"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("pump_meter_readings", schema=None) as batch_op:
        batch_op.create_index("ix_pump_meter_readings_pump_id", ["pump_id"], unique=False)
        batch_op.create_index("ix_readings_date", ["reading_date"], unique=False)

    op.create_table(
        "daily_pms_calculations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pump_id", sa.Integer(), nullable=False),
        sa.Column("calculation_date", sa.Date(), nullable=False),
        sa.Column("opening_reading", sa.Numeric(12, 1), nullable=False),
        sa.Column("closing_reading", sa.Numeric(12, 1), nullable=False),
        sa.Column("volume_dispensed", sa.Numeric(12, 1), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_revenue", sa.Numeric(14, 2), nullable=False),
        sa.Column("has_rollover", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("rollover_value", sa.Numeric(12, 1), nullable=True),
        sa.Column("deviation_from_average", sa.Numeric(9, 2), nullable=True),
        sa.Column("is_estimated", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("calculation_method", sa.String(32), nullable=False, server_default="meter_readings"),
        sa.Column("approval_state", sa.String(16), nullable=False, server_default="none"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("calculated_by", sa.String(64), nullable=False),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_by", sa.String(64), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(
            ["pump_id"], ["pump_configurations.id"],
            name="fk_daily_pms_calculations_pump_id_pump_configurations",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_daily_pms_calculations"),
        sa.UniqueConstraint("pump_id", "calculation_date", name="uq_calculations_pump_date"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("daily_pms_calculations", schema=None) as batch_op:
        batch_op.create_index("ix_daily_pms_calculations_pump_id", ["pump_id"], unique=False)
        batch_op.create_index("ix_daily_pms_calculations_approval_state", ["approval_state"], unique=False)
        batch_op.create_index("ix_calculations_date", ["calculation_date"], unique=False)

    op.create_table(
        "pms_sales_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("station_id", sa.Integer(), nullable=False),
        sa.Column("record_date", sa.Date(), nullable=False),
        sa.Column("total_volume_dispensed", sa.Numeric(14, 1), nullable=False),
        sa.Column("total_revenue", sa.Numeric(16, 2), nullable=False),
        sa.Column("average_unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("pump_count", sa.Integer(), nullable=False),
        sa.Column("estimated_volume", sa.Numeric(14, 1), nullable=False, server_default=sa.text("0")),
        sa.Column("calculation_details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_pms_sales_records"),
        sa.UniqueConstraint("station_id", "record_date", name="uq_sales_records_station_date"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("pms_sales_records", schema=None) as batch_op:
        batch_op.create_index("ix_pms_sales_records_station_id", ["station_id"], unique=False)

    op.create_table(
        "fuel_prices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_fuel_prices"),
        sa.UniqueConstraint("product_id", "effective_from", name="uq_fuel_prices_product_from"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("fuel_prices", schema=None) as batch_op:
        batch_op.create_index("ix_fuel_prices_product_id", ["product_id"], unique=False)


def downgrade():
    op.drop_table("fuel_prices")
    op.drop_table("pms_sales_records")
    op.drop_table("daily_pms_calculations")
    op.drop_table("pump_meter_readings")
    op.drop_table("pump_configurations")
