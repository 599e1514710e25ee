"""ORM models for universities, journals, subscriptions and browsing history."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class University(Base):
    """A subscribing institution, keyed by display name."""

    __tablename__ = "universities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    country = Column(String(100), nullable=False, default="Unknown")
    type = Column(String(50), nullable=False, default="Public")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Journal(Base):
    """A journal title. Global — shared by every university that lists it."""

    __tablename__ = "journals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False, unique=True)
    issn = Column(String(50), nullable=True)
    publisher = Column(String(255), nullable=False, default="Unknown")
    subject_area = Column(String(255), nullable=False, default="General")
    impact_factor = Column(Float, nullable=True)
    keywords = Column(Text, nullable=True)  # comma-joined
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Subscription(Base):
    """One row per (university, journal, status)."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("university_id", "journal_id", "status", name="uq_subscription_pair_status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    university_id = Column(Integer, ForeignKey("universities.id"), nullable=False, index=True)
    journal_id = Column(Integer, ForeignKey("journals.id"), nullable=False, index=True)
    subscription_type = Column(String(50), nullable=False, default="institutional")
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    annual_cost = Column(Float, nullable=False)
    cost_is_synthetic = Column(Boolean, nullable=False, default=False)  # True = fallback draw, not from the sheet
    usage_count = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class BrowsingHistoryEvent(Base):
    """Engagement telemetry for a (university, journal) pair."""

    __tablename__ = "browsing_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    university_id = Column(Integer, ForeignKey("universities.id"), nullable=False, index=True)
    journal_id = Column(Integer, ForeignKey("journals.id"), nullable=False, index=True)
    view_date = Column(Date, nullable=False)
    view_count = Column(Integer, nullable=False, default=1)
    session_duration = Column(Integer, nullable=False, default=0)  # seconds
    pages_viewed = Column(Integer, nullable=False, default=1)
    downloaded_samples = Column(Integer, nullable=False, default=0)
    requested_trial = Column(Integer, nullable=False, default=0)  # 0/1
    is_synthetic = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
