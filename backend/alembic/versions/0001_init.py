"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _inspector():
    from sqlalchemy import inspect as sa_inspect
    return sa_inspect(op.get_bind())


def upgrade() -> None:
    # alembic_version.version_num defaults to VARCHAR(32), too short for some revision IDs.
    if op.get_bind().dialect.name == "postgresql":
        op.execute(sa.text("ALTER TABLE alembic_version ALTER COLUMN version_num TYPE VARCHAR(64)"))

    inspector = _inspector()
    existing_tables = set(inspector.get_table_names())

    def existing_indexes(table: str) -> set[str]:
        if table not in existing_tables:
            return set()
        return {idx["name"] for idx in inspector.get_indexes(table)}

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("name", sa.String(), nullable=True),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("password_hash", sa.String(), nullable=True),
            sa.Column("image", sa.String(), nullable=True),
            sa.Column("role", sa.String(), nullable=False, server_default="USER"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
        )
    idxs = existing_indexes("users")
    if "ix_users_id" not in idxs:
        op.create_index("ix_users_id", "users", ["id"])
    if "ix_users_email" not in idxs:
        op.create_index("ix_users_email", "users", ["email"], unique=True)
    if "ix_users_role" not in idxs:
        op.create_index("ix_users_role", "users", ["role"])

    if "subscriptions" not in existing_tables:
        op.create_table(
            "subscriptions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("customer_id", sa.String(), nullable=True),
            sa.Column("plan", sa.String(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
        )
    idxs = existing_indexes("subscriptions")
    if "ix_subscriptions_id" not in idxs:
        op.create_index("ix_subscriptions_id", "subscriptions", ["id"])
    if "ix_subscriptions_user_id" not in idxs:
        op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"])
    if "ix_subscriptions_customer_id" not in idxs:
        op.create_index("ix_subscriptions_customer_id", "subscriptions", ["customer_id"], unique=True)
    if "ix_subscriptions_plan" not in idxs:
        op.create_index("ix_subscriptions_plan", "subscriptions", ["plan"])
    if "ix_subscriptions_status" not in idxs:
        op.create_index("ix_subscriptions_status", "subscriptions", ["status"])

    if "notes" not in existing_tables:
        op.create_table(
            "notes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
        )
    idxs = existing_indexes("notes")
    if "ix_notes_id" not in idxs:
        op.create_index("ix_notes_id", "notes", ["id"])
    if "ix_notes_user_id" not in idxs:
        op.create_index("ix_notes_user_id", "notes", ["user_id"])


def downgrade() -> None:
    op.drop_table("notes")
    op.drop_table("subscriptions")
    op.drop_table("users")
