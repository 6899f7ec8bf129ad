"""verification tokens

Revision ID: 0003_verification_tokens
Revises: 0002_users_email_verification
Create Date: 2026-10-20
"""

from alembic import op
import sqlalchemy as sa


revision = "0003_verification_tokens"
down_revision = "0002_users_email_verification"
branch_labels = None
depends_on = None


def upgrade() -> None:
    from sqlalchemy import inspect as sa_inspect
    inspector = sa_inspect(op.get_bind())
    existing_tables = set(inspector.get_table_names())

    if "verification_tokens" not in existing_tables:
        op.create_table(
            "verification_tokens",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("identifier", sa.String(), nullable=False),
            sa.Column("token", sa.String(), nullable=False),
            sa.Column("purpose", sa.String(), nullable=False),
            sa.Column("expires", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
        )
        existing_idxs: set[str] = set()
    else:
        existing_idxs = {idx["name"] for idx in inspector.get_indexes("verification_tokens")}

    if "ix_verification_tokens_id" not in existing_idxs:
        op.create_index("ix_verification_tokens_id", "verification_tokens", ["id"])
    if "ix_verification_tokens_identifier" not in existing_idxs:
        op.create_index("ix_verification_tokens_identifier", "verification_tokens", ["identifier"])
    if "ix_verification_tokens_token" not in existing_idxs:
        op.create_index("ix_verification_tokens_token", "verification_tokens", ["token"], unique=True)
    if "ix_verification_tokens_purpose" not in existing_idxs:
        op.create_index("ix_verification_tokens_purpose", "verification_tokens", ["purpose"])


def downgrade() -> None:
    op.drop_index("ix_verification_tokens_purpose", table_name="verification_tokens")
    op.drop_index("ix_verification_tokens_token", table_name="verification_tokens")
    op.drop_index("ix_verification_tokens_identifier", table_name="verification_tokens")
    op.drop_index("ix_verification_tokens_id", table_name="verification_tokens")
    op.drop_table("verification_tokens")
