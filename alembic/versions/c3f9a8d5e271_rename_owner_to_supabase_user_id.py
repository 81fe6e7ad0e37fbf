"""rename_owner_to_supabase_user_id

Revision ID: c3f9a8d5e271
Revises: b7e41c2a9d10
Create Date: 2026-01-20 14:05:00.000000

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = 'c3f9a8d5e271'
down_revision: Union[str, Sequence[str], None] = 'b7e41c2a9d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.alter_column("subscriptions", "user_id", new_column_name="supabase_user_id")
    op.execute("ALTER INDEX ix_subscriptions_user_id RENAME TO ix_subscriptions_supabase_user_id")
    op.execute(
        "ALTER TABLE subscriptions "
        "RENAME CONSTRAINT uq_subscriptions_user_plan TO uq_subscriptions_owner_plan"
    )


def downgrade() -> None:
    op.execute(
        "ALTER TABLE subscriptions "
        "RENAME CONSTRAINT uq_subscriptions_owner_plan TO uq_subscriptions_user_plan"
    )
    op.execute("ALTER INDEX ix_subscriptions_supabase_user_id RENAME TO ix_subscriptions_user_id")
    op.alter_column("subscriptions", "supabase_user_id", new_column_name="user_id")
