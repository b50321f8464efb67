"""Create the key-value store and questionnaire profile tables.

``kv_store`` is the generic byte-valued store that holds questionnaire
drafts (among other features' keys).  ``questionnaire_profiles`` holds one
finalized output record per user.

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP

# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "kv_store",
        sa.Column("key", sa.Text(), primary_key=True),
        sa.Column("value", sa.LargeBinary(), nullable=False),
        sa.Column(
            "updated_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "questionnaire_profiles",
        sa.Column("user_id", sa.Text(), primary_key=True),
        sa.Column("record", JSONB(), nullable=False),
        sa.Column("version", sa.Text(), nullable=False),
        sa.Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    # GIN index for JSONB lookups by answer
    op.create_index(
        "ix_profile_record_gin",
        "questionnaire_profiles",
        ["record"],
        postgresql_using="gin",
    )


def downgrade() -> None:
    op.drop_index("ix_profile_record_gin", table_name="questionnaire_profiles")
    op.drop_table("questionnaire_profiles")
    op.drop_table("kv_store")
