"""Add submission type and organization columns to stories."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20250715_0002"
down_revision = "20250601_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("stories") as batch:
        batch.add_column(sa.Column("type", sa.String(), nullable=True))
        batch.add_column(sa.Column("organization_name", sa.String(), nullable=True))
        batch.add_column(sa.Column("organization_description", sa.Text(), nullable=True))
        batch.add_column(sa.Column("website", sa.String(), nullable=True))
        batch.add_column(sa.Column("focus_areas", sa.Text(), nullable=True))
    op.create_index("ix_stories_type", "stories", ["type"], unique=False)
    op.execute(
        sa.text(
            """
            UPDATE stories
            SET type = CASE
                WHEN substr(id, 1, 13) = 'organization_' THEN 'organization'
                WHEN instr(story, char(10) || 'Website:') > 0 THEN 'organization'
                WHEN instr(story, char(10) || 'Focus Areas:') > 0 THEN 'organization'
                ELSE 'personal'
            END
            WHERE type IS NULL
            """,
        ),
    )


def downgrade() -> None:
    op.drop_index("ix_stories_type", table_name="stories")
    with op.batch_alter_table("stories") as batch:
        batch.drop_column("focus_areas")
        batch.drop_column("website")
        batch.drop_column("organization_description")
        batch.drop_column("organization_name")
        batch.drop_column("type")
