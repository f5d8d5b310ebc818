"""initial schema: pipelines + audit log

Revision ID: 5c1e0a7d9b42
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5c1e0a7d9b42"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "pipelines",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("wrapper_id", sa.String(64), nullable=False),
        sa.Column("wrapper_name", sa.String(255), nullable=False),
        sa.Column("account_id", sa.String(255), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("stages", sa.JSON, nullable=False),
        sa.Column("created_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("wrapper_id", "version", "account_id", name="uq_pipeline_version"),
    )
    op.create_index("ix_pipelines_wrapper_id", "pipelines", ["wrapper_id"])
    op.create_index("ix_pipelines_account_id", "pipelines", ["account_id"])
    op.create_index("ix_pipeline_wrapper_name_status", "pipelines", ["wrapper_id", "wrapper_name", "status"])
    op.create_index(
        "uq_pipeline_active_name",
        "pipelines",
        ["account_id", "wrapper_name"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "execution_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("wrapper_id", sa.String(64), nullable=False),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("account_id", sa.String(255), nullable=False),
        sa.Column("request_id", sa.String(64)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True)),
        sa.Column("duration_ms", sa.Float),
        sa.Column("input_snapshot", sa.JSON),
        sa.Column("output_snapshot", sa.JSON),
        sa.Column("error_message", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_execution_logs_wrapper_id", "execution_logs", ["wrapper_id"])
    op.create_index("ix_execution_logs_account_id", "execution_logs", ["account_id"])
    op.create_index("ix_execution_logs_start_time", "execution_logs", ["start_time"])

    op.create_table(
        "stage_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "execution_id",
            sa.Integer,
            sa.ForeignKey("execution_logs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("stage_index", sa.Integer, nullable=False),
        sa.Column("stage_name", sa.String(200)),
        sa.Column("stage_type", sa.String(50)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("duration_ms", sa.Float),
        sa.Column("request_snapshot", sa.JSON),
        sa.Column("response_snapshot", sa.JSON),
        sa.Column("error_message", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_stage_logs_execution_id", "stage_logs", ["execution_id"])


def downgrade():
    op.drop_table("stage_logs")
    op.drop_table("execution_logs")
    op.drop_table("pipelines")
