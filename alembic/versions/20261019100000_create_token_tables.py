"""Create refresh_tokens and password_reset_tokens tables.

Revision ID: 20261019100000
Revises: 20261019000000
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019100000"
down_revision: Union[str, None] = "20261019000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# (table name, single-use flag column)
TOKEN_TABLES = (
    ("refresh_tokens", "is_revoked"),
    ("password_reset_tokens", "is_used"),
)


def upgrade() -> None:
    for table, flag in TOKEN_TABLES:
        op.create_table(
            table,
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("token", sa.String(length=255), nullable=False),
            sa.Column("user_id", sa.Uuid(), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column(flag, sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.text("now()"),
                nullable=False,
            ),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(op.f(f"ix_{table}_token"), table, ["token"], unique=True)
        op.create_index(op.f(f"ix_{table}_user_id"), table, ["user_id"], unique=False)
        op.create_index(op.f(f"ix_{table}_expires_at"), table, ["expires_at"], unique=False)

    # At most one unused reset token per user.
    op.create_index(
        "uq_password_reset_tokens_unused_user",
        "password_reset_tokens",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("NOT is_used"),
    )


def downgrade() -> None:
    op.drop_index("uq_password_reset_tokens_unused_user", table_name="password_reset_tokens")
    for table, _flag in reversed(TOKEN_TABLES):
        op.drop_index(op.f(f"ix_{table}_expires_at"), table_name=table)
        op.drop_index(op.f(f"ix_{table}_user_id"), table_name=table)
        op.drop_index(op.f(f"ix_{table}_token"), table_name=table)
        op.drop_table(table)
