"""
Database connection for PostgreSQL.

Match requests live in SQL because they are durable workflow records with a
uniqueness constraint. Locations are real-time data and live in Redis.
"""
import os
import uuid
from datetime import datetime, timezone

from dotenv import load_dotenv
from sqlalchemy import create_engine, Column, String, DateTime, UniqueConstraint, Index
from sqlalchemy.orm import declarative_base, sessionmaker

# Load environment variables from .env file
load_dotenv()

# Database URL loaded from environment variable
DATABASE_URL = os.getenv("DATABASE_URL")

# Create engine and session factory
# We only create these if DATABASE_URL is set (allows tests to run without DB)
engine = None
SessionLocal = None

if DATABASE_URL:
    engine = create_engine(DATABASE_URL)
    SessionLocal = sessionmaker(bind=engine)

# Base class for our models
Base = declarative_base()

MATCH_STATUS_PENDING = "pending"
MATCH_STATUS_ACCEPTED = "accepted"
MATCH_STATUS_DECLINED = "declined"
MATCH_STATUS_OUT_OF_RANGE = "out_of_range"

MATCH_STATUSES = (
    MATCH_STATUS_PENDING,
    MATCH_STATUS_ACCEPTED,
    MATCH_STATUS_DECLINED,
    MATCH_STATUS_OUT_OF_RANGE,
)


def _utcnow():
    return datetime.now(timezone.utc)


class MatchRequest(Base):
    """
    A request from one user to be matched with another.

    Status is decided when the request is created: "pending" if the two
    users were within matching radius, "out_of_range" otherwise. Only a
    pending request can be accepted or declined, and only by its target.
    No location data is stored here.
    """
    __tablename__ = "match_request"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    requester_id = Column(String(64), nullable=False)
    target_id = Column(String(64), nullable=False)
    listing_id = Column(String(64), nullable=True)
    status = Column(String(16), nullable=False, default=MATCH_STATUS_PENDING)
    requested_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    was_in_range_at_request = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("requester_id", "target_id", "listing_id", name="unique_match_request"),
        Index("match_request_target_id_idx", "target_id"),
        Index("match_request_status_idx", "status"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "target_id": self.target_id,
            "listing_id": self.listing_id,
            "status": self.status,
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
        }


def create_tables(bind=None):
    """Create tables that do not exist yet (on the configured engine by default)."""
    bind = bind or engine
    if bind is None:
        return
    Base.metadata.create_all(bind)


def get_db_session():
    """
    Get a database session.

    Returns None if database is not configured (useful for tests).
    """
    if SessionLocal is None:
        return None
    return SessionLocal()


def is_database_configured():
    """Check if database connection is configured."""
    return DATABASE_URL is not None and engine is not None
