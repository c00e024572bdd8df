"""Initial schema with PostGIS extension, users and bookings.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from geoalchemy2 import Geometry


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Enable PostGIS extension
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="rider"),
        sa.Column("location", Geometry("POINT", srid=4326), nullable=True),
        sa.Column("location_lat", sa.Float, nullable=True),
        sa.Column("location_lng", sa.Float, nullable=True),
        sa.Column("location_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_users_location", "users", ["location"], postgresql_using="gist"
    )
    op.create_index("idx_users_role", "users", ["role"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_ref", sa.String(32), unique=True, nullable=False),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "driver_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column("full_name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("pickup_location", sa.String(255), nullable=False),
        sa.Column("drop_location", sa.String(255), nullable=False),
        sa.Column("travel_date", sa.Date, nullable=False),
        sa.Column("pickup_time", sa.String(10), nullable=False),
        sa.Column("passengers", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "vehicle_type", sa.String(20), nullable=False, server_default="sedan"
        ),
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column(
            "status", sa.String(20), nullable=False, server_default="pending"
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_user", "bookings", ["user_id"])
    op.create_index("idx_bookings_driver", "bookings", ["driver_id"])
    op.create_index("idx_bookings_ref", "bookings", ["booking_ref"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("users")
