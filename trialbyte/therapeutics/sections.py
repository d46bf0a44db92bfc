"""
Trial Sections
==============
Registry of the trial tables and single-entity operations on them.

The registry drives both the aggregate orchestrator (which walks every
section of a trial) and the per-section CRUD endpoints.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from pydantic import ValidationError

from ..auth.audit import ActivityLogger
from ..database.connection import DatabaseManager, get_db_manager
from ..database.enums import ActivityAction, TherapeuticTable
from ..database.repositories import (
    ActivityLogRepository, BaseRepository, TrialOverviewRepository,
    TrialSectionRepository, OutcomeRepository, CriteriaRepository,
    TimingRepository, ResultsRepository, SitesRepository,
    OtherSourceRepository, TrialLogRepository, NotesRepository,
    UserRepository,
)
from .coercion import coerce_section
from .errors import (
    InvalidPayload, MissingTrialId, MissingUserId, RecordNotFound, translate_errors,
)
from . import other_sources

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionSpec:
    """
    One trial table.

    Attributes:
        name: Payload key, coercion schema key and URL segment
        label: Human-readable name used in messages
        table: Table name recorded in the activity log
        result_key: Key of the section in aggregate read results
        summary_key: Key of the section in a deletion summary
        repository_class: Repository bound to the table
    """
    name: str
    label: str
    table: TherapeuticTable
    result_key: str
    summary_key: str
    repository_class: Type[BaseRepository]


OVERVIEW_SECTION = SectionSpec(
    "overview", "Therapeutic trial overview", TherapeuticTable.OVERVIEW,
    "overview", "overview", TrialOverviewRepository,
)

# Child sections in creation order; cascade deletes walk the same order
CHILD_SECTIONS = (
    SectionSpec("outcome", "Therapeutic outcome measured", TherapeuticTable.OUTCOME,
                "outcomes", "outcomes", OutcomeRepository),
    SectionSpec("criteria", "Therapeutic participation criteria", TherapeuticTable.CRITERIA,
                "criteria", "criteria", CriteriaRepository),
    SectionSpec("timing", "Therapeutic timing", TherapeuticTable.TIMING,
                "timing", "timing", TimingRepository),
    SectionSpec("results", "Therapeutic results", TherapeuticTable.RESULTS,
                "results", "results", ResultsRepository),
    SectionSpec("sites", "Therapeutic sites", TherapeuticTable.SITES,
                "sites", "sites", SitesRepository),
    SectionSpec("other", "Therapeutic other source", TherapeuticTable.OTHER_SOURCES,
                "other", "other_sources", OtherSourceRepository),
    SectionSpec("logs", "Therapeutic log", TherapeuticTable.LOGS,
                "logs", "logs", TrialLogRepository),
    SectionSpec("notes", "Therapeutic note", TherapeuticTable.NOTES,
                "notes", "notes", NotesRepository),
)

SECTIONS_BY_NAME: Dict[str, SectionSpec] = {
    spec.name: spec for spec in (OVERVIEW_SECTION,) + CHILD_SECTIONS
}


def prepare_section_data(spec: SectionSpec, data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply intake coercion for one section's payload."""
    prepared = coerce_section(spec.name, {k: v for k, v in data.items() if k != "user_id"})
    if spec.name == "other" and "data" in prepared:
        try:
            prepared["data"] = other_sources.to_storage(prepared["data"])
        except ValidationError as e:
            raise InvalidPayload("Invalid other source data", error=str(e)) from e
    return prepared


def default_activity_logger(db: DatabaseManager) -> ActivityLogger:
    return ActivityLogger(ActivityLogRepository(db), UserRepository(db))


class TrialSectionService:
    """Single-entity CRUD over any trial table, with activity logging."""

    def __init__(self, db: Optional[DatabaseManager] = None,
                 activity_logger: Optional[ActivityLogger] = None):
        self.db = db or get_db_manager()
        self.activity = activity_logger or default_activity_logger(self.db)
        self._repositories: Dict[str, BaseRepository] = {
            name: spec.repository_class(self.db) for name, spec in SECTIONS_BY_NAME.items()
        }

    def section(self, name: str) -> SectionSpec:
        spec = SECTIONS_BY_NAME.get(name)
        if spec is None:
            raise RecordNotFound.for_resource(f"Section '{name}'")
        return spec

    def repository(self, name: str) -> BaseRepository:
        return self._repositories[self.section(name).name]

    def _child_repository(self, name: str) -> TrialSectionRepository:
        repo = self.repository(name)
        if not isinstance(repo, TrialSectionRepository):
            raise RecordNotFound.for_resource(f"Trial-scoped operation on '{name}'")
        return repo

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self, name: str, trial_id: Optional[str] = None) -> List[Dict[str, Any]]:
        spec = self.section(name)
        with translate_errors(f"Failed to fetch {spec.label.lower()} records"):
            repo = self.repository(name)
            if isinstance(repo, TrialSectionRepository):
                return repo.find_all(trial_id=trial_id)
            return repo.find_all()

    def list_by_trial(self, name: str, trial_id: str) -> List[Dict[str, Any]]:
        spec = self.section(name)
        if not trial_id:
            raise MissingTrialId()
        repo = self._child_repository(name)
        with translate_errors(f"Failed to fetch {spec.label.lower()} records"):
            return repo.find_by_trial_id(trial_id)

    def get(self, name: str, record_id: str) -> Dict[str, Any]:
        spec = self.section(name)
        with translate_errors(f"Failed to fetch {spec.label.lower()}"):
            record = self.repository(name).find_by_id(record_id)
        if record is None:
            raise RecordNotFound.for_resource(spec.label)
        return record

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, name: str, data: Dict[str, Any]) -> Dict[str, Any]:
        spec = self.section(name)
        user_id = data.get("user_id")
        if not user_id:
            raise MissingUserId()
        if spec is not OVERVIEW_SECTION and not data.get("trial_id"):
            raise MissingTrialId()

        prepared = prepare_section_data(spec, data)
        with translate_errors(f"Failed to create {spec.label.lower()}"):
            record = self.repository(name).create(prepared)

        self.activity.log(ActivityAction.INSERT, spec.table, record["id"], record, user_id)
        return record

    def update(self, name: str, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        spec = self.section(name)
        user_id = data.get("user_id")
        if not user_id:
            raise MissingUserId()

        prepared = prepare_section_data(spec, data)
        with translate_errors(f"Failed to update {spec.label.lower()}"):
            repo = self.repository(name)
            before = repo.find_by_id(record_id)
            if before is None:
                raise RecordNotFound.for_resource(spec.label)
            record = repo.update(record_id, prepared)
        if record is None:
            raise RecordNotFound.for_resource(spec.label)

        self.activity.log(
            ActivityAction.UPDATE, spec.table, record_id,
            {"before": before, "after": record}, user_id,
        )
        return record

    def update_by_trial(self, name: str, trial_id: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        spec = self.section(name)
        repo = self._child_repository(name)
        prepared = prepare_section_data(spec, data)
        with translate_errors(f"Failed to update {spec.label.lower()} records"):
            return repo.update_by_trial_id(trial_id, prepared)

    def delete(self, name: str, record_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        spec = self.section(name)
        if not user_id:
            raise MissingUserId()
        with translate_errors(f"Failed to delete {spec.label.lower()}"):
            deleted = self.repository(name).delete(record_id)
        if deleted is None:
            raise RecordNotFound.for_resource(spec.label)

        self.activity.log(ActivityAction.DELETE, spec.table, record_id, deleted, user_id)
        return deleted

    def delete_by_trial(self, name: str, trial_id: str) -> int:
        spec = self.section(name)
        repo = self._child_repository(name)
        with translate_errors(f"Failed to delete {spec.label.lower()} records"):
            return repo.delete_by_trial_id(trial_id)
