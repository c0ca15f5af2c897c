"""create file records table

Revision ID: 7e2c4a9b1d30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7e2c4a9b1d30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # 创建产品附件元数据表
    op.create_table(
        "file_records",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "content_type",
            sa.String(length=255),
            nullable=False,
            server_default=sa.text("'application/octet-stream'"),
        ),
        sa.Column("url", sa.String(length=1024), nullable=False, server_default=sa.text("''")),
        sa.Column("key", sa.String(length=1024), nullable=False, server_default=sa.text("''")),
        sa.Column("product_id", sa.String(length=255), nullable=False),
        sa.Column("step_id", sa.Integer(), nullable=True),
        sa.Column("sub_step_id", sa.Integer(), nullable=True),
        sa.Column(
            "system_generated",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP(0)"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP(0)"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_file_records_id"),
        # 同一产品下文件名唯一，并发同名提交由该约束裁决
        sa.UniqueConstraint("product_id", "name", name="uq_file_records_product_id_name"),
    )
    op.create_index(
        "ix_file_records_product_id", "file_records", ["product_id"], unique=False
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_file_records_product_id", table_name="file_records")
    op.drop_table("file_records")
