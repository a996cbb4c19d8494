"""
SQLAlchemy Table definitions for the Tracksync database.

These Table objects mirror the schema defined in migrations/001_initial_schema.sql.
Uses SQLAlchemy Core (not ORM) for flexibility with Pydantic models.
"""

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

metadata = MetaData()

# =============================================================================
# TABLE: trackings
# =============================================================================

trackings = Table(
    "trackings",
    metadata,
    Column("id", UUID, primary_key=True),
    Column("order_id", BigInteger),
    # Customer
    Column("customer_name", String(255), nullable=False),
    Column("customer_email", String(255), nullable=False),
    # Tracking
    Column("tracking_code", String(13), unique=True, nullable=False),
    Column("current_status", String(100), nullable=False),
    Column("category", String(20), nullable=False, default="pac"),
    Column("delivery_channel", String(20), nullable=False, default="delivery"),
    Column("products", JSONB, default=[]),
    Column("quantity", Integer, default=0),
    Column("events", JSONB, default=[]),
    Column("dt_expected", DateTime(timezone=True)),
    Column("sender", String(255)),
    # Timestamps
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)
