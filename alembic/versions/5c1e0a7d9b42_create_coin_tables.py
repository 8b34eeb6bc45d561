"""Create users, user_rewards and coin_requests tables

Revision ID: 5c1e0a7d9b42
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c1e0a7d9b42"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

request_status = sa.Enum("PENDING", "APPROVED", "DECLINED", name="request_status")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("coins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
    )
    op.create_index("ix_users_coins_desc", "users", ["coins"])

    op.create_table(
        "user_rewards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reward_id", sa.String(50), nullable=False),
        sa.Column("cost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "purchased_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.UniqueConstraint("user_id", "reward_id", name="uq_user_rewards_user_reward"),
    )

    op.create_table(
        "coin_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("status", request_status, nullable=False, server_default="PENDING"),
        sa.Column("coins_given", sa.Integer(), nullable=True),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("submitted_at", sa.Date(), nullable=False),
        sa.Column("proof_link", sa.String(500), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.BigInteger(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
    )
    op.create_index(
        "ix_coin_requests_status_processed", "coin_requests", ["status", "processed"]
    )
    op.create_index(
        "ix_coin_requests_user_action_status",
        "coin_requests",
        ["user_id", "action", "status"],
    )


def downgrade() -> None:
    op.drop_index("ix_coin_requests_user_action_status", table_name="coin_requests")
    op.drop_index("ix_coin_requests_status_processed", table_name="coin_requests")
    op.drop_table("coin_requests")
    request_status.drop(op.get_bind(), checkfirst=True)
    op.drop_table("user_rewards")
    op.drop_index("ix_users_coins_desc", table_name="users")
    op.drop_table("users")
