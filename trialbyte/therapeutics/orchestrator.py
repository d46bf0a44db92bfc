"""
Trial Aggregate Orchestrator
============================
Create, read and cascade-delete a therapeutic trial together with its eight
child sections as one logical unit.

Writes run in one of two modes:
- per-statement (default): each insert/delete commits on its own, so a
  failure part-way leaves the rows written so far in place
- atomic: all writes of one operation share a transaction and roll back
  together

Activity entries are collected during the operation and written afterwards,
each in its own transaction. In atomic mode they are written only if the
operation committed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..auth.audit import ActivityLogger
from ..database.connection import DatabaseManager, get_db_manager
from ..database.enums import ActivityAction, TherapeuticTable
from ..database.repositories import TrialOverviewRepository, TrialSectionRepository
from .coercion import coerce_section
from .errors import (
    InvalidPayload, MissingOverview, MissingTrialId, MissingUserId, TrialNotFound, translate_errors,
)
from .sections import CHILD_SECTIONS, OVERVIEW_SECTION, default_activity_logger
from . import other_sources

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 16

SourcesPlan = Union[List[other_sources.OtherSourceItem], other_sources.LegacySource]


class _WriteScope:
    """Session and pending activity entries of one write operation."""

    def __init__(self, session: Optional[Session] = None):
        self.session = session
        self.pending: List[Dict[str, Any]] = []

    def record(self, action_type: ActivityAction, table_name: TherapeuticTable,
               record_id: Optional[str], change_details: Dict[str, Any], user_id: str) -> None:
        self.pending.append({
            "action_type": action_type,
            "table_name": table_name,
            "record_id": record_id,
            "change_details": change_details,
            "user_id": user_id,
        })


class TrialAggregateService:
    """
    Orchestrates the trial overview and its child sections.

    Usage:
        service = TrialAggregateService(db_manager)
        created = service.create_trial({"user_id": uid, "overview": {...}})
        trial = service.fetch_trial(created["trial_id"])
    """

    def __init__(
        self,
        db: Optional[DatabaseManager] = None,
        activity_logger: Optional[ActivityLogger] = None,
        atomic_writes: bool = False,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.db = db or get_db_manager()
        self.activity = activity_logger or default_activity_logger(self.db)
        self.atomic_writes = atomic_writes
        self.overview_repo = TrialOverviewRepository(self.db)
        self.section_repos: Dict[str, TrialSectionRepository] = {
            spec.name: spec.repository_class(self.db) for spec in CHILD_SECTIONS
        }
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="trial-read")

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Write plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _write_scope(self) -> Generator[_WriteScope, None, None]:
        if not self.atomic_writes:
            scope = _WriteScope()
            try:
                yield scope
            finally:
                self._emit_activity(scope)
            return

        session = self.db.get_session()
        scope = _WriteScope(session)
        try:
            yield scope
            session.commit()
        except Exception:
            session.rollback()
            if scope.pending:
                logger.warning(f"Transaction rolled back; discarding {len(scope.pending)} activity entries")
            raise
        finally:
            session.close()
        self._emit_activity(scope)

    def _emit_activity(self, scope: _WriteScope) -> None:
        for entry in scope.pending:
            self.activity.log(**entry)

    # ------------------------------------------------------------------
    # CreateTrial
    # ------------------------------------------------------------------

    def create_trial(self, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Create a trial overview and every supplied child section.

        Args:
            payload: ``user_id``, ``overview`` and optional section objects
                (``outcome``, ``criteria``, ``timing``, ``results``, ``sites``,
                ``other_sources`` or ``other``, ``logs``, ``notes``)

        Returns:
            ``trial_id``, the first ``trial_identifier`` (or None) and the
            created rows keyed by section
        """
        payload = payload or {}
        user_id = payload.get("user_id")
        overview = payload.get("overview")
        if not user_id:
            raise MissingUserId()
        if not overview:
            raise MissingOverview()
        sources = self._prepare_other_sources(payload)

        with translate_errors("Failed to create trial"):
            with self._write_scope() as scope:
                created = self._create_all(scope, payload, user_id, sources)

        trial_identifiers = created["overview"].get("trial_identifier") or []
        logger.info(f"Created therapeutic trial {created['overview']['id']} with {len(created)} sections")
        return {
            "trial_id": created["overview"]["id"],
            "trial_identifier": trial_identifiers[0] if trial_identifiers else None,
            "data": created,
        }

    def _create_all(self, scope: _WriteScope, payload: Dict[str, Any], user_id: str,
                    sources: Optional[SourcesPlan]) -> Dict[str, Any]:
        created: Dict[str, Any] = {}

        overview = self.overview_repo.create(
            coerce_section(OVERVIEW_SECTION.name, payload["overview"]), session=scope.session
        )
        trial_id = overview["id"]
        created["overview"] = overview
        scope.record(ActivityAction.INSERT, OVERVIEW_SECTION.table, trial_id, overview, user_id)

        for spec in CHILD_SECTIONS:
            if spec.name == "other":
                if sources is not None:
                    self._create_other_sources(scope, sources, trial_id, user_id, created)
                continue

            section_data = payload.get(spec.name)
            if not section_data or not isinstance(section_data, dict):
                continue
            row = self.section_repos[spec.name].create(
                {**coerce_section(spec.name, section_data), "trial_id": trial_id},
                session=scope.session,
            )
            created[spec.name] = row
            scope.record(ActivityAction.INSERT, spec.table, row["id"], row, user_id)

        scope.record(
            ActivityAction.INSERT,
            TherapeuticTable.TRIAL_SUMMARY,
            trial_id,
            {
                "summary": "Complete therapeutic trial created",
                "trial_title": overview.get("title") or "Untitled Trial",
                "trial_phase": overview.get("trial_phase") or "Unknown",
                "status": overview.get("status") or "Unknown",
                "sections_created": len(created),
                "created_sections": list(created.keys()),
            },
            user_id,
        )
        return created

    @staticmethod
    def _prepare_other_sources(payload: Dict[str, Any]) -> Optional[SourcesPlan]:
        """
        Validate the other-sources payload before anything is written.

        Returns a list of tagged variants for the multi-category shape, a
        single legacy source for a flat object, or None when absent.
        """
        source = payload.get("other_sources") or payload.get("other")
        if not source or not isinstance(source, dict):
            return None
        if not other_sources.is_categorized(source):
            return other_sources.legacy_from_flat(source)
        try:
            return other_sources.sources_from_categories(source)
        except ValidationError as e:
            raise InvalidPayload("Invalid other sources data", error=str(e)) from e

    def _create_other_sources(self, scope: _WriteScope, sources: SourcesPlan, trial_id: str,
                              user_id: str, created: Dict[str, Any]) -> None:
        repo = self.section_repos["other"]
        table = TherapeuticTable.OTHER_SOURCES

        if isinstance(sources, list):
            rows = [
                repo.create({"trial_id": trial_id, "data": other_sources.serialize(item)},
                            session=scope.session)
                for item in sources
            ]
            if rows:
                created["other_sources"] = rows
                categories = sorted({item.type for item in sources})
                scope.record(ActivityAction.INSERT, table, trial_id,
                             {"count": len(rows), "sections": categories}, user_id)
            return

        row = repo.create({"trial_id": trial_id, "data": other_sources.serialize(sources)},
                          session=scope.session)
        created["other"] = row
        scope.record(ActivityAction.INSERT, table, row["id"], row, user_id)

    # ------------------------------------------------------------------
    # FetchTrial / FetchAllTrials
    # ------------------------------------------------------------------

    def fetch_trial(self, trial_id: str) -> Dict[str, Any]:
        """
        Read one trial with all of its sections.

        The overview and the eight section reads are issued concurrently.
        Missing sections come back as empty lists.
        """
        if not trial_id:
            raise MissingTrialId()

        with translate_errors("Failed to fetch therapeutic trial data"):
            overview_future = self._executor.submit(self.overview_repo.find_by_id, trial_id)
            section_futures = {
                spec.result_key: self._executor.submit(self.section_repos[spec.name].find_by_trial_id, trial_id)
                for spec in CHILD_SECTIONS
            }
            overview = overview_future.result()
            sections = {key: future.result() or [] for key, future in section_futures.items()}

        if overview is None:
            raise TrialNotFound()

        return {"trial_id": trial_id, "data": {"overview": overview, **sections}}

    def fetch_all_trials(self) -> Dict[str, Any]:
        """
        Read every trial with all of its sections, newest first.

        All per-trial section reads go to the pool as one batch. There is
        no pagination.
        """
        with translate_errors("Failed to fetch all therapeutic trials data"):
            overviews = self.overview_repo.find_all()
            if not overviews:
                return {"total_trials": 0, "trials": []}

            futures = {
                (overview["id"], spec.result_key): self._executor.submit(
                    self.section_repos[spec.name].find_by_trial_id, overview["id"]
                )
                for overview in overviews
                for spec in CHILD_SECTIONS
            }

            trials = []
            for overview in overviews:
                trial = {"trial_id": overview["id"], "overview": overview}
                for spec in CHILD_SECTIONS:
                    trial[spec.result_key] = futures[(overview["id"], spec.result_key)].result() or []
                trials.append(trial)

        return {"total_trials": len(trials), "trials": trials}

    # ------------------------------------------------------------------
    # DeleteTrialCascade
    # ------------------------------------------------------------------

    def delete_trial(self, trial_id: str, user_id: str) -> Dict[str, Any]:
        """
        Delete a trial and every child row, children first.

        Returns:
            Identifying fields of the deleted trial, per-table counts and
            their total
        """
        if not trial_id:
            raise MissingTrialId("trial_id parameter is required")
        if not user_id:
            raise MissingUserId("user_id parameter is required")

        with translate_errors("Failed to delete therapeutic trial data"):
            overview = self.overview_repo.find_by_id(trial_id)
        if overview is None:
            raise TrialNotFound()

        trial_identifiers = overview.get("trial_identifier") or []
        trial_identifier = trial_identifiers[0] if trial_identifiers else None

        with translate_errors("Failed to delete therapeutic trial data"):
            with self._write_scope() as scope:
                deletion_summary: Dict[str, int] = {}
                for spec in CHILD_SECTIONS:
                    deletion_summary[spec.summary_key] = self.section_repos[spec.name].delete_by_trial_id(
                        trial_id, session=scope.session
                    )
                deleted = self.overview_repo.delete(trial_id, session=scope.session)
                deletion_summary["overview"] = 1 if deleted else 0
                total = sum(deletion_summary.values())

                scope.record(
                    ActivityAction.DELETE,
                    OVERVIEW_SECTION.table,
                    trial_id,
                    {
                        "deleted_trial": {
                            "id": trial_id,
                            "trial_identifier": trial_identifier,
                            "title": overview.get("title"),
                            "therapeutic_area": overview.get("therapeutic_area"),
                        },
                        "deletion_summary": deletion_summary,
                        "total_records_deleted": total,
                    },
                    user_id,
                )

        logger.info(f"Deleted therapeutic trial {trial_id}: {total} records")
        return {
            "success": True,
            "trial_info": {
                "id": trial_id,
                "trial_identifier": trial_identifier,
                "title": overview.get("title"),
            },
            "deletion_summary": deletion_summary,
            "total_records_deleted": total,
        }
