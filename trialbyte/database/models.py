"""
TRIALBYTE - Database Models
===========================
SQLAlchemy ORM models for therapeutic trial data.

Models:
- TrialOverview (aggregate root)
- OutcomeMeasured, ParticipationCriteria, Timing, TrialResult, TrialSite,
  OtherSource, TrialLog, TrialNote (child sections keyed by trial_id)
- User, UserActivity (accounts and activity log)
"""

from datetime import datetime, date
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import (
    Integer, String, Text, DateTime, ForeignKey, Index, JSON
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.dialects.postgresql import ARRAY, JSONB


# TEXT[] on PostgreSQL, JSON list elsewhere (sqlite test databases)
StringArray = JSON().with_variant(ARRAY(Text), "postgresql")
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    def to_dict(self) -> Dict[str, Any]:
        """Column values keyed by column name, with dates as ISO strings."""
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            result[column.key] = value
        return result


class TrialSectionMixin:
    """Columns shared by every child section table."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    trial_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# TRIAL OVERVIEW (aggregate root)
# =============================================================================

class TrialOverview(Base):
    """Master record of a therapeutic trial."""
    __tablename__ = "therapeutic_trial_overview"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    therapeutic_area: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    trial_identifier: Mapped[Optional[List[str]]] = mapped_column(StringArray, nullable=True)
    trial_phase: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    primary_drugs: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    other_drugs: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    disease_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    patient_segment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    line_of_therapy: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference_links: Mapped[Optional[List[str]]] = mapped_column(StringArray, nullable=True)
    trial_tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sponsor_collaborators: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sponsor_field_activity: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    associated_cro: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    countries: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    region: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    trial_record_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# CHILD SECTIONS
# =============================================================================

class OutcomeMeasured(TrialSectionMixin, Base):
    """Purpose, outcome measures and design of a trial."""
    __tablename__ = "therapeutic_outcome_measured"

    purpose_of_trial: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    primary_outcome_measure: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    other_outcome_measure: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    study_design_keywords: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    study_design: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    treatment_regimen: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    number_of_arms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class ParticipationCriteria(TrialSectionMixin, Base):
    """Eligibility and enrollment of a trial."""
    __tablename__ = "therapeutic_participation_criteria"

    inclusion_criteria: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    exclusion_criteria: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    age_from: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    subject_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    age_to: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sex: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    healthy_volunteers: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    target_no_volunteers: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    actual_enrolled_volunteers: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class Timing(TrialSectionMixin, Base):
    """Schedule estimates of a trial."""
    __tablename__ = "therapeutic_timing"

    start_date_estimated: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    trial_end_date_estimated: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    overall_duration_complete: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    overall_duration_publish: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timing_references: Mapped[Optional[Any]] = mapped_column(JSONDocument, nullable=True)


class TrialResult(TrialSectionMixin, Base):
    """Outcome and adverse events of a trial."""
    __tablename__ = "therapeutic_results"

    trial_outcome: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    trial_results: Mapped[Optional[List[str]]] = mapped_column(StringArray, nullable=True)
    adverse_event_reported: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    adverse_event_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    treatment_for_adverse_events: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class TrialSite(TrialSectionMixin, Base):
    """Site information of a trial."""
    __tablename__ = "therapeutic_sites"

    total: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    study_sites: Mapped[Optional[List[str]]] = mapped_column(StringArray, nullable=True)
    principal_investigators: Mapped[Optional[List[str]]] = mapped_column(StringArray, nullable=True)
    site_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    site_countries: Mapped[Optional[List[str]]] = mapped_column(StringArray, nullable=True)
    site_regions: Mapped[Optional[List[str]]] = mapped_column(StringArray, nullable=True)
    site_contact_info: Mapped[Optional[List[str]]] = mapped_column(StringArray, nullable=True)
    site_notes: Mapped[Optional[Any]] = mapped_column(JSONDocument, nullable=True)


class OtherSource(TrialSectionMixin, Base):
    """Supplementary source; ``data`` holds one serialized tagged variant."""
    __tablename__ = "therapeutic_other_sources"

    data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class TrialLog(TrialSectionMixin, Base):
    """Review and modification history of a trial record."""
    __tablename__ = "therapeutic_logs"

    trial_changes_log: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    trial_added_date: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_modified_date: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_modified_user: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    full_review_user: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    next_review_date: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class TrialNote(TrialSectionMixin, Base):
    """Free-form note attached to a trial."""
    __tablename__ = "therapeutic_notes"

    date_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attachments: Mapped[Optional[List[str]]] = mapped_column(StringArray, nullable=True)


# =============================================================================
# USERS AND ACTIVITY
# =============================================================================

class User(Base):
    """User accounts."""
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    # Credentials
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    company: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    designation: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    plan: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.pop("password_hash", None)
        return data


class UserActivity(Base):
    """Activity log entry written after each data change."""
    __tablename__ = "user_activity"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.user_id"), nullable=False)
    table_name: Mapped[str] = mapped_column(String(100), nullable=False)
    record_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    change_details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index('idx_activity_record', 'table_name', 'record_id'),
        Index('idx_activity_user_time', 'user_id', 'created_at'),
    )


# Child section models in cascade-delete order
TRIAL_SECTION_MODELS = (
    OutcomeMeasured,
    ParticipationCriteria,
    Timing,
    TrialResult,
    TrialSite,
    OtherSource,
    TrialLog,
    TrialNote,
)
