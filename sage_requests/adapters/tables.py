"""SQLAlchemy Core table definitions for requests and ratings."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Engine

metadata = MetaData()

assistance_requests = Table(
    "assistance_requests",
    metadata,
    Column("request_id", String(36), primary_key=True),
    Column("user_id", String(36), nullable=False),
    Column("expert_id", String(36), nullable=True),
    Column("status", String(16), nullable=False),
    Column("llm_summary", Text, nullable=False),
    Column("chat_session_id", String(128), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("accepted_at", DateTime(timezone=True), nullable=True),
    Column("resolved_at", DateTime(timezone=True), nullable=True),
    CheckConstraint(
        "status IN ('pending', 'active', 'resolved')",
        name="ck_assistance_requests_status",
    ),
    Index("ix_assistance_requests_status_created", "status", "created_at"),
)

expert_ratings = Table(
    "expert_ratings",
    metadata,
    Column("rating_id", String(36), primary_key=True),
    Column(
        "request_id",
        String(36),
        ForeignKey("assistance_requests.request_id"),
        nullable=False,
    ),
    Column("user_id", String(36), nullable=False),
    Column("expert_id", String(36), nullable=False),
    Column("score", Integer, nullable=False),
    UniqueConstraint("request_id", name="uq_expert_ratings_request"),
)


def create_schema(engine: Engine) -> None:
    """Create missing tables. Not a migration tool."""
    metadata.create_all(engine)
