"""users email verification

Revision ID: 0002_users_email_verification
Revises: 0001_init
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_users_email_verification"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    from sqlalchemy import inspect as sa_inspect
    inspector = sa_inspect(op.get_bind())
    existing_cols = {col["name"] for col in inspector.get_columns("users")}
    existing_idxs = {idx["name"] for idx in inspector.get_indexes("users")}

    with op.batch_alter_table("users") as batch_op:
        if "email_verified" not in existing_cols:
            batch_op.add_column(sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()))
        if "verification_token" not in existing_cols:
            batch_op.add_column(sa.Column("verification_token", sa.String(), nullable=True))

        if "ix_users_verification_token" not in existing_idxs:
            batch_op.create_index("ix_users_verification_token", ["verification_token"])


def downgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_index("ix_users_verification_token")
        batch_op.drop_column("verification_token")
        batch_op.drop_column("email_verified")
