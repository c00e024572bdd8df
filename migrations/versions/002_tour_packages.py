"""Tour package catalog.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tour_packages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("price", sa.Float, nullable=False),
        sa.Column("duration", sa.String(60), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("image", sa.String(500), nullable=True),
        sa.Column("is_popular", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("features", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_tour_packages_popular", "tour_packages", ["is_popular"])


def downgrade() -> None:
    op.drop_table("tour_packages")
