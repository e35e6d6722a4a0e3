"""Add narrative text and provenance to map pins."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20250801_0003"
down_revision = "20250715_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("map_pins") as batch:
        batch.add_column(sa.Column("story", sa.Text(), nullable=True))
        batch.add_column(
            sa.Column("origin", sa.String(), nullable=False, server_default="story"),
        )
    op.execute(
        sa.text(
            """
            UPDATE map_pins
            SET origin = 'manual'
            WHERE substr(id, 1, 7) = 'manual_'
              AND NOT EXISTS (SELECT 1 FROM stories WHERE stories.id = map_pins.id)
            """,
        ),
    )


def downgrade() -> None:
    with op.batch_alter_table("map_pins") as batch:
        batch.drop_column("origin")
        batch.drop_column("story")
