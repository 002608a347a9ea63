"""Sales report ingestion: batches, staging, validation logs, sales records, channels

Revision ID: 20261017_sales_ingest
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_sales_ingest"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "upload_batches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("business_date", sa.Date(), nullable=True),
        sa.Column("forced_format", sa.String(length=32), nullable=True),
        sa.Column("total_files", sa.Integer(), nullable=False),
        sa.Column("processed_files", sa.Integer(), nullable=False),
        sa.Column("failed_files", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("upload_batches", schema=None) as batch_op:
        batch_op.create_index("ix_upload_batches_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_upload_batches_team_id", ["team_id"], unique=False)
        batch_op.create_index("ix_upload_batches_status", ["status"], unique=False)
        batch_op.create_index("ix_upload_batches_org_status", ["org_id", "status"], unique=False)

    op.create_table(
        "upload_batch_files",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("detected_format", sa.String(length=32), nullable=True),
        sa.Column("detection_confidence", sa.Integer(), nullable=True),
        sa.Column("extracted_date", sa.Date(), nullable=True),
        sa.Column("error_kind", sa.String(length=64), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("staged_record_id", sa.Integer(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["batch_id"], ["upload_batches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("batch_id", "position", name="uq_upload_batch_file_position"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("upload_batch_files", schema=None) as batch_op:
        batch_op.create_index("ix_upload_batch_files_batch_id", ["batch_id"], unique=False)

    op.create_table(
        "staged_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.String(length=64), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("detected_format", sa.String(length=32), nullable=False),
        sa.Column("confidence_score", sa.Integer(), nullable=False),
        sa.Column("business_date", sa.Date(), nullable=False),
        sa.Column("extracted_data", sa.JSON(), nullable=False),
        sa.Column("validation_findings", sa.JSON(), nullable=False),
        sa.Column("user_corrections", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("reviewed_by", sa.String(length=128), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["batch_id"], ["upload_batches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("staged_records", schema=None) as batch_op:
        batch_op.create_index("ix_staged_records_batch_id", ["batch_id"], unique=False)
        batch_op.create_index("ix_staged_records_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_staged_records_status", ["status"], unique=False)
        batch_op.create_index("ix_staged_records_batch_status", ["batch_id", "status"], unique=False)

    op.create_table(
        "validation_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=False),
        sa.Column("staged_record_id", sa.Integer(), nullable=True),
        sa.Column("sales_record_id", sa.Integer(), nullable=True),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("validation_type", sa.String(length=32), nullable=False),
        sa.Column("field_name", sa.String(length=128), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("suggested_value", sa.JSON(), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=False),
        sa.Column("resolved_by", sa.String(length=128), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["batch_id"], ["upload_batches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("validation_logs", schema=None) as batch_op:
        batch_op.create_index("ix_validation_logs_batch_id", ["batch_id"], unique=False)
        batch_op.create_index("ix_validation_logs_staged_record_id", ["staged_record_id"], unique=False)
        batch_op.create_index("ix_validation_logs_sales_record_id", ["sales_record_id"], unique=False)
        batch_op.create_index("ix_validation_logs_batch_resolved", ["batch_id", "is_resolved"], unique=False)

    op.create_table(
        "sales_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.String(length=64), nullable=False),
        sa.Column("business_date", sa.Date(), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("gross_sales", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("net_sales", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("order_count", sa.Integer(), nullable=False),
        sa.Column("order_average", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("pos_system", sa.String(length=32), nullable=True),
        sa.Column("source_file_name", sa.String(length=255), nullable=True),
        sa.Column("source_batch_id", sa.Integer(), nullable=True),
        sa.Column("confidence_score", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint("gross_sales >= 0", name="ck_sales_records_gross_nonneg"),
        sa.CheckConstraint("net_sales >= 0", name="ck_sales_records_net_nonneg"),
        sa.CheckConstraint("order_count >= 0", name="ck_sales_records_orders_nonneg"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "team_id", "business_date", name="uq_sales_records_org_team_date"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales_records", schema=None) as batch_op:
        batch_op.create_index("ix_sales_records_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_sales_records_team_date", ["org_id", "team_id", "business_date"], unique=False)

    op.create_table(
        "sales_channels",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("commission_type", sa.String(length=16), nullable=False),
        sa.Column("commission_rate", sa.Numeric(precision=6, scale=4), nullable=False),
        sa.Column("flat_fee_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("aliases", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("commission_type IN ('percentage', 'flat_fee')", name="ck_sales_channels_type"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "name", name="uq_sales_channels_org_name"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales_channels", schema=None) as batch_op:
        batch_op.create_index("ix_sales_channels_org_id", ["org_id"], unique=False)


def downgrade():
    with op.batch_alter_table("sales_channels", schema=None) as batch_op:
        batch_op.drop_index("ix_sales_channels_org_id")
    op.drop_table("sales_channels")

    with op.batch_alter_table("sales_records", schema=None) as batch_op:
        batch_op.drop_index("ix_sales_records_team_date")
        batch_op.drop_index("ix_sales_records_org_id")
    op.drop_table("sales_records")

    with op.batch_alter_table("validation_logs", schema=None) as batch_op:
        batch_op.drop_index("ix_validation_logs_batch_resolved")
        batch_op.drop_index("ix_validation_logs_sales_record_id")
        batch_op.drop_index("ix_validation_logs_staged_record_id")
        batch_op.drop_index("ix_validation_logs_batch_id")
    op.drop_table("validation_logs")

    with op.batch_alter_table("staged_records", schema=None) as batch_op:
        batch_op.drop_index("ix_staged_records_batch_status")
        batch_op.drop_index("ix_staged_records_status")
        batch_op.drop_index("ix_staged_records_org_id")
        batch_op.drop_index("ix_staged_records_batch_id")
    op.drop_table("staged_records")

    with op.batch_alter_table("upload_batch_files", schema=None) as batch_op:
        batch_op.drop_index("ix_upload_batch_files_batch_id")
    op.drop_table("upload_batch_files")

    with op.batch_alter_table("upload_batches", schema=None) as batch_op:
        batch_op.drop_index("ix_upload_batches_org_status")
        batch_op.drop_index("ix_upload_batches_status")
        batch_op.drop_index("ix_upload_batches_team_id")
        batch_op.drop_index("ix_upload_batches_org_id")
    op.drop_table("upload_batches")
