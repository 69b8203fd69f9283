"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for leads, audit snapshots, scores and missions.
"""

import uuid
from datetime import datetime
from pathlib import Path

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Lead(Base):
    """A business discovered by a mission."""

    __tablename__ = "leads"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    domain = Column(String)  # website as reported by the source
    canonical_domain = Column(String, unique=True)  # acme.com
    phone = Column(String)
    normalized_phone = Column(String, index=True)  # +16195550001
    email = Column(String)
    address = Column(String)
    city = Column(String, index=True)
    state = Column(String)
    postal_code = Column(String)
    latitude = Column(Float)
    longitude = Column(Float)
    category = Column(String, nullable=False)
    source = Column(String, nullable=False)  # google_places, json_file
    source_id = Column(String, unique=True)  # provider's id, e.g. place_id
    status = Column(String, nullable=False, default="new")  # new, contacted, qualified, junk
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class LeadMetrics(Base):
    """Latest website audit snapshot for a lead (overwritten on re-audit)."""

    __tablename__ = "lead_metrics"

    id = Column(String, primary_key=True, default=_uuid)
    lead_id = Column(String, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, unique=True)
    https_ok = Column(Boolean, nullable=False, default=False)
    mobile_ok = Column(Boolean, nullable=False, default=False)
    has_booking = Column(Boolean, nullable=False, default=False)
    schema_ok = Column(Boolean, nullable=False, default=False)
    cms_hint = Column(String)
    lcp_ms = Column(Integer)
    analytics_pixels = Column(JSON)
    rating = Column(Float)
    review_count = Column(Integer)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class Score(Base):
    """Latest score for a lead (overwritten on re-score)."""

    __tablename__ = "scores"

    id = Column(String, primary_key=True, default=_uuid)
    lead_id = Column(String, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, unique=True)
    need = Column(Integer, nullable=False)
    value = Column(Integer, nullable=False)
    reachability = Column(Integer, nullable=False)
    total = Column(Integer, nullable=False)
    reasons = Column(JSON)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class Mission(Base):
    """One run of the search -> audit -> score -> save pipeline."""

    __tablename__ = "missions"

    id = Column(String, primary_key=True, default=_uuid)
    title = Column(String)
    goal_text = Column(Text, nullable=False)
    query = Column(String)
    location = Column(String)
    max_leads = Column(Integer)
    min_score = Column(Integer)
    status = Column(String, nullable=False, default="running")  # running, completed, failed
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    completed_at = Column(DateTime)


class MissionEvent(Base):
    """Append-only progress record; id gives the order."""

    __tablename__ = "mission_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    mission_id = Column(String, ForeignKey("missions.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String, nullable=False)  # info, success, warning, error, tool
    tool_name = Column(String)
    payload = Column(JSON)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


def get_engine(db_path: Path):
    """
    Create an engine for the SQLite database at db_path.

    Missions run on background threads, so connections may be used outside
    the thread that opened them.
    """
    return create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )


def init_database(db_path: Path):
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file

    Returns:
        The engine bound to the database
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(db_path)
    Base.metadata.create_all(engine)
    return engine
