"""companies and characters reference tables

Revision ID: 8e2f4b1c6a7d
Revises: 3c1d7a9e52b4
Create Date: 2026-11-02 14:40:51.902117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e2f4b1c6a7d'
down_revision: Union[str, Sequence[str], None] = '3c1d7a9e52b4'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("image", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "characters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("image", sa.String(length=512), nullable=True),
        sa.Column("first_appearance", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_characters_name", "characters", ["name"])


def downgrade() -> None:
    op.drop_index("ix_characters_name", table_name="characters")
    op.drop_table("characters")
    op.drop_table("companies")
