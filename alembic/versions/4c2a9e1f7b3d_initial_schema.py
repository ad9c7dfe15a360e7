"""Initial schema

Revision ID: 4c2a9e1f7b3d
Revises:
Create Date: 2026-10-18 09:12:44.102931

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4c2a9e1f7b3d"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("nickname", sa.String(100), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("profile_image", sa.String(500), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("gender", sa.String(20), nullable=True),
        sa.Column("credits", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_premium", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_active", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
    )

    op.create_table(
        "groups",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", sa.String(30), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "group_members",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("user_id", sa.String(50), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("group_id", sa.String(50), sa.ForeignKey("groups.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("joined_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "group_id", name="uq_group_members_user_group"),
    )

    op.create_table(
        "likes",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("from_user_id", sa.String(50), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("to_user_id", sa.String(50), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("group_id", sa.String(50), sa.ForeignKey("groups.id"), nullable=False),
        sa.Column("is_match", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("from_user_id", "to_user_id", "group_id", name="uq_likes_from_to_group"),
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("user1_id", sa.String(50), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("user2_id", sa.String(50), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("group_id", sa.String(50), sa.ForeignKey("groups.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("expired_at", sa.DateTime(), nullable=True),
        sa.Column("extended_until", sa.DateTime(), nullable=True),
        sa.CheckConstraint("user1_id < user2_id", name="ck_matches_canonical_pair"),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("match_id", sa.String(50), sa.ForeignKey("matches.id"), nullable=False),
        sa.Column("sender_id", sa.String(50), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )

    # Create indexes
    op.create_index("ix_group_members_user_group_status", "group_members", ["user_id", "group_id", "status"])
    op.create_index("ix_group_members_group_status", "group_members", ["group_id", "status"])
    op.create_index("ix_likes_from_created", "likes", ["from_user_id", "created_at"])
    op.create_index("ix_likes_to_user", "likes", ["to_user_id"])
    op.create_index(
        "uq_matches_open_pair",
        "matches",
        ["user1_id", "user2_id", "group_id"],
        unique=True,
        postgresql_where=sa.text("status != 'deleted'"),
    )
    op.create_index("ix_matches_status_created", "matches", ["status", "created_at"])
    op.create_index("ix_messages_match_created", "messages", ["match_id", "created_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_messages_match_created", table_name="messages")
    op.drop_index("ix_matches_status_created", table_name="matches")
    op.drop_index("uq_matches_open_pair", table_name="matches")
    op.drop_index("ix_likes_to_user", table_name="likes")
    op.drop_index("ix_likes_from_created", table_name="likes")
    op.drop_index("ix_group_members_group_status", table_name="group_members")
    op.drop_index("ix_group_members_user_group_status", table_name="group_members")

    op.drop_table("messages")
    op.drop_table("matches")
    op.drop_table("likes")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("users")
