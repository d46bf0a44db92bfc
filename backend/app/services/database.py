"""
Database Service Bridge
=======================
Bridges FastAPI to the trial services and the shared database manager.
"""

from typing import Optional

from trialbyte.auth.audit import ActivityLogger, SystemAdminAccount
from trialbyte.database.connection import get_db_manager
from trialbyte.database.repositories import ActivityLogRepository, UserRepository
from trialbyte.therapeutics.orchestrator import TrialAggregateService
from trialbyte.therapeutics.sections import TrialSectionService

from app.config import settings

# Keep global instances
_activity_logger: Optional[ActivityLogger] = None
_trial_service: Optional[TrialAggregateService] = None
_section_service: Optional[TrialSectionService] = None


def get_activity_logger() -> ActivityLogger:
    """Get singleton activity logger bound to the shared database."""
    global _activity_logger

    if _activity_logger is None:
        db = get_db_manager()
        _activity_logger = ActivityLogger(
            ActivityLogRepository(db),
            UserRepository(db),
            admin=SystemAdminAccount(
                username=settings.SYSTEM_ADMIN_USERNAME,
                email=settings.SYSTEM_ADMIN_EMAIL,
                password=settings.SYSTEM_ADMIN_PASSWORD,
            ),
        )
    return _activity_logger


def get_trial_service() -> TrialAggregateService:
    """Get singleton trial aggregate service."""
    global _trial_service

    if _trial_service is None:
        _trial_service = TrialAggregateService(
            get_db_manager(),
            activity_logger=get_activity_logger(),
            atomic_writes=settings.TRIAL_ATOMIC_WRITES,
            max_workers=settings.FANOUT_MAX_WORKERS,
        )
    return _trial_service


def get_section_service() -> TrialSectionService:
    """Get singleton single-entity service."""
    global _section_service

    if _section_service is None:
        _section_service = TrialSectionService(get_db_manager(), activity_logger=get_activity_logger())
    return _section_service


def get_activity_repository() -> ActivityLogRepository:
    return ActivityLogRepository(get_db_manager())


def clear_service_cache() -> None:
    """Drop cached services (the trial service's worker pool is shut down)."""
    global _activity_logger, _trial_service, _section_service

    if _trial_service is not None:
        _trial_service.close()
    _activity_logger = None
    _trial_service = None
    _section_service = None
