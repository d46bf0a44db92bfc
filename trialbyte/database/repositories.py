"""
TRIALBYTE - Data Repositories
=============================
Data access layer with CRUD operations for all entities.

Every method opens its own session (one commit per statement) unless a
session is passed in, in which case the caller owns the transaction.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Generator, List, Optional, Type

from sqlalchemy.orm import Session

from .connection import DatabaseManager, get_db_manager
from .models import (
    Base, TrialOverview, OutcomeMeasured, ParticipationCriteria, Timing,
    TrialResult, TrialSite, OtherSource, TrialLog, TrialNote,
    User, UserActivity,
)

logger = logging.getLogger(__name__)

# Assigned by the database, never taken from request payloads
_PROTECTED_COLUMNS = frozenset({"id", "created_at", "updated_at"})


class BaseRepository:
    """Base repository with common CRUD operations."""

    model: Type[Base] = None

    def __init__(self, db: Optional[DatabaseManager] = None):
        """
        Initialize repository.

        Args:
            db: Database manager (uses the shared singleton if not provided)
        """
        self._db = db

    @property
    def db(self) -> DatabaseManager:
        if self._db is None:
            self._db = get_db_manager()
        return self._db

    @contextmanager
    def _scope(self, session: Optional[Session] = None) -> Generator[Session, None, None]:
        """Use the caller's session, or open and commit a private one."""
        if session is not None:
            yield session
        else:
            with self.db.session() as own:
                yield own

    @classmethod
    def writable_columns(cls) -> frozenset:
        return frozenset(c.key for c in cls.model.__table__.columns) - _PROTECTED_COLUMNS

    def _filter_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        columns = self.writable_columns()
        return {k: v for k, v in data.items() if k in columns}

    def create(self, data: Dict[str, Any], session: Optional[Session] = None) -> Dict[str, Any]:
        """Insert one row and return it with generated fields populated."""
        with self._scope(session) as s:
            record = self.model(**self._filter_fields(data))
            s.add(record)
            s.flush()
            return record.to_dict()

    def find_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        with self._scope() as s:
            record = s.get(self.model, record_id)
            return record.to_dict() if record else None

    def find_all(self) -> List[Dict[str, Any]]:
        """All rows, newest first."""
        with self._scope() as s:
            rows = s.query(self.model).order_by(self.model.created_at.desc()).all()
            return [r.to_dict() for r in rows]

    def update(self, record_id: str, updates: Dict[str, Any],
               session: Optional[Session] = None) -> Optional[Dict[str, Any]]:
        """
        Set the provided fields on one row.

        Keys absent from ``updates`` are left untouched; explicit ``None``
        clears the column.

        Returns:
            Updated row, or None if no row has that id
        """
        with self._scope(session) as s:
            record = s.get(self.model, record_id)
            if record is None:
                return None
            self._apply(record, updates)
            s.flush()
            return record.to_dict()

    def delete(self, record_id: str, session: Optional[Session] = None) -> Optional[Dict[str, Any]]:
        """Delete one row and return its last state, or None if absent."""
        with self._scope(session) as s:
            record = s.get(self.model, record_id)
            if record is None:
                return None
            snapshot = record.to_dict()
            s.delete(record)
            s.flush()
            return snapshot

    def _apply(self, record: Base, updates: Dict[str, Any]) -> None:
        for key, value in self._filter_fields(updates).items():
            if key == "trial_id":
                continue
            setattr(record, key, value)
        if hasattr(record, "updated_at"):
            record.updated_at = datetime.utcnow()


class TrialOverviewRepository(BaseRepository):
    """Repository for trial overview (aggregate root) rows."""

    model = TrialOverview


class TrialSectionRepository(BaseRepository):
    """Repository for child section rows keyed by ``trial_id``."""

    def find_by_trial_id(self, trial_id: str) -> List[Dict[str, Any]]:
        """All rows of one trial in insertion order."""
        with self._scope() as s:
            rows = (
                s.query(self.model)
                .filter(self.model.trial_id == trial_id)
                .order_by(self.model.created_at.asc())
                .all()
            )
            return [r.to_dict() for r in rows]

    def find_all(self, trial_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if trial_id:
            return self.find_by_trial_id(trial_id)
        return super().find_all()

    def update_by_trial_id(self, trial_id: str, updates: Dict[str, Any],
                           session: Optional[Session] = None) -> List[Dict[str, Any]]:
        """Apply the same updates to every row of a trial."""
        with self._scope(session) as s:
            rows = s.query(self.model).filter(self.model.trial_id == trial_id).all()
            for record in rows:
                self._apply(record, updates)
            s.flush()
            return [r.to_dict() for r in rows]

    def delete_by_trial_id(self, trial_id: str, session: Optional[Session] = None) -> int:
        """Delete every row of a trial and return the number removed."""
        with self._scope(session) as s:
            count = (
                s.query(self.model)
                .filter(self.model.trial_id == trial_id)
                .delete(synchronize_session=False)
            )
            return count or 0


class OutcomeRepository(TrialSectionRepository):
    model = OutcomeMeasured


class CriteriaRepository(TrialSectionRepository):
    model = ParticipationCriteria


class TimingRepository(TrialSectionRepository):
    model = Timing


class ResultsRepository(TrialSectionRepository):
    model = TrialResult


class SitesRepository(TrialSectionRepository):
    model = TrialSite


class OtherSourceRepository(TrialSectionRepository):
    model = OtherSource


class TrialLogRepository(TrialSectionRepository):
    model = TrialLog


class NotesRepository(TrialSectionRepository):
    model = TrialNote


class UserRepository(BaseRepository):
    """Repository for User operations."""

    model = User

    def find_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        with self._scope() as s:
            user = s.query(User).filter(User.username == username).first()
            return user.to_dict() if user else None


class ActivityLogRepository(BaseRepository):
    """Repository for the user activity log."""

    model = UserActivity

    def log_activity(
        self,
        user_id: str,
        table_name: str,
        record_id: Optional[str],
        action_type: str,
        change_details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Write one activity entry in its own transaction.

        Args:
            user_id: Acting user (must exist in ``users``)
            table_name: Table the change applies to
            record_id: Primary key of the changed record
            action_type: INSERT, UPDATE, or DELETE
            change_details: JSON-serializable description of the change
        """
        return self.create({
            "user_id": user_id,
            "table_name": table_name,
            "record_id": record_id,
            "action_type": action_type,
            "change_details": change_details,
        })

    def get_by_record(self, table_name: str, record_id: str) -> List[Dict[str, Any]]:
        """Get activity history for a record."""
        with self._scope() as s:
            rows = (
                s.query(UserActivity)
                .filter(UserActivity.table_name == table_name, UserActivity.record_id == record_id)
                .order_by(UserActivity.created_at.desc())
                .all()
            )
            return [r.to_dict() for r in rows]

    def get_recent(self, limit: int = 100, table_name: Optional[str] = None,
                   user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get recent activity entries."""
        with self._scope() as s:
            query = s.query(UserActivity)
            if table_name:
                query = query.filter(UserActivity.table_name == table_name)
            if user_id:
                query = query.filter(UserActivity.user_id == user_id)
            rows = query.order_by(UserActivity.created_at.desc()).limit(limit).all()
            return [r.to_dict() for r in rows]
