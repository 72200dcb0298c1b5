"""Create secrets table

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "secrets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(255), nullable=True),
        sa.Column("ciphertext", sa.LargeBinary, nullable=False),
        sa.Column("iv", sa.LargeBinary(12), nullable=False),
        sa.Column("auth_tag", sa.LargeBinary(16), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("one_time_access", sa.Boolean, default=False, nullable=False),
        sa.Column("viewed", sa.Boolean, default=False, nullable=False),
        sa.Column("expires_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )

    op.create_index("ix_secrets_owner_id", "secrets", ["owner_id"])
    op.create_index("ix_secrets_expires_at", "secrets", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_secrets_expires_at", table_name="secrets")
    op.drop_index("ix_secrets_owner_id", table_name="secrets")
    op.drop_table("secrets")
