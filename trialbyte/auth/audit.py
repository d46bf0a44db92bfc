"""
TRIALBYTE - Activity Logger
===========================
Best-effort activity logging for data changes.

An entry that cannot be attributed to its user (the user row does not exist)
is re-attributed to a system administrator account, created on first use.
Logging never raises into the operation that triggered it.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from ..database.repositories import ActivityLogRepository, UserRepository
from .password import PasswordHandler

logger = logging.getLogger(__name__)

FOREIGN_KEY_VIOLATION = "23503"
FALLBACK_NOTE = "Logged by system admin due to missing user"


@dataclass
class SystemAdminAccount:
    """Account used when the acting user cannot be referenced."""
    username: str = "admin"
    email: str = "admin@system.local"
    password: str = "admin123"
    company: str = "System"
    designation: str = "System Administrator"
    plan: str = "admin"


class ActivityOutcome(str, Enum):
    LOGGED = "logged"
    FALLBACK = "fallback"
    DROPPED = "dropped"
    SKIPPED = "skipped"


@dataclass
class ActivityLogResult:
    """What happened to one activity entry."""
    outcome: ActivityOutcome
    user_id: Optional[str] = None
    entry_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def written(self) -> bool:
        return self.outcome in (ActivityOutcome.LOGGED, ActivityOutcome.FALLBACK)


def is_foreign_key_violation(exc: BaseException) -> bool:
    """True for a referential-integrity failure, by vendor code or message."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == FOREIGN_KEY_VIOLATION:
        return True
    return "foreign key" in str(exc).lower()


class ActivityLogger:
    """
    Writes user activity entries with a system-admin fallback.

    Features:
    - One transaction per entry, independent of the caller's transaction
    - Foreign-key failures retried under the system admin with the
      original user recorded in ``change_details``
    - Failures reported as an ``ActivityLogResult``, never raised
    """

    def __init__(
        self,
        activity_repo: Optional[ActivityLogRepository] = None,
        user_repo: Optional[UserRepository] = None,
        admin: Optional[SystemAdminAccount] = None,
        password_handler: Optional[PasswordHandler] = None,
    ):
        self.activity_repo = activity_repo or ActivityLogRepository()
        self.user_repo = user_repo or UserRepository(self.activity_repo.db)
        self.admin = admin or SystemAdminAccount()
        self.password_handler = password_handler or PasswordHandler()
        self._admin_id: Optional[str] = None
        self._admin_lock = threading.Lock()

    def ensure_system_admin(self) -> str:
        """
        Look up the system admin account, creating it if missing.

        Returns:
            The admin's user_id
        """
        if self._admin_id:
            return self._admin_id

        with self._admin_lock:
            if self._admin_id:
                return self._admin_id

            existing = self.user_repo.find_by_username(self.admin.username)
            if existing is None:
                try:
                    existing = self.user_repo.create({
                        "username": self.admin.username,
                        "email": self.admin.email,
                        "password_hash": self.password_handler.hash_password(self.admin.password),
                        "company": self.admin.company,
                        "designation": self.admin.designation,
                        "plan": self.admin.plan,
                    })
                    logger.info(f"Created system admin user '{self.admin.username}'")
                except IntegrityError:
                    # Another worker created it first
                    existing = self.user_repo.find_by_username(self.admin.username)
                    if existing is None:
                        raise

            self._admin_id = existing["user_id"]
            return self._admin_id

    def log(
        self,
        action_type: str,
        table_name: str,
        record_id: Optional[str],
        change_details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> ActivityLogResult:
        """
        Record one activity entry.

        Args:
            action_type: INSERT, UPDATE, or DELETE
            table_name: Table the change applies to
            record_id: Primary key of the changed record
            change_details: JSON-serializable description of the change
            user_id: Acting user; entries without one are skipped

        Returns:
            Outcome of the write
        """
        action_type = getattr(action_type, "value", action_type)
        table_name = getattr(table_name, "value", table_name)

        if not user_id:
            logger.warning(f"No user_id provided for activity logging on {table_name}")
            return ActivityLogResult(ActivityOutcome.SKIPPED)

        try:
            entry = self.activity_repo.log_activity(
                user_id=user_id,
                table_name=table_name,
                record_id=record_id,
                action_type=action_type,
                change_details=change_details,
            )
            return ActivityLogResult(ActivityOutcome.LOGGED, user_id=user_id, entry_id=entry["id"])
        except Exception as e:
            if not is_foreign_key_violation(e):
                logger.error(f"Error logging activity on {table_name}: {e}")
                return ActivityLogResult(ActivityOutcome.DROPPED, user_id=user_id, error=str(e))

        logger.warning(f"User {user_id} not found for activity logging, using system admin")
        details = dict(change_details or {})
        details["original_user"] = user_id
        details["note"] = FALLBACK_NOTE

        try:
            return self._log_as_admin(action_type, table_name, record_id, details)
        except Exception as e:
            error = e

        if is_foreign_key_violation(error):
            # Cached admin row was deleted; look it up (or create it) again
            logger.warning(f"System admin '{self.admin.username}' is gone, resolving it again")
            with self._admin_lock:
                self._admin_id = None
            try:
                return self._log_as_admin(action_type, table_name, record_id, details)
            except Exception as e:
                error = e

        logger.error(f"Failed to log activity even with system admin: {error}")
        return ActivityLogResult(ActivityOutcome.DROPPED, user_id=user_id, error=str(error))

    def _log_as_admin(self, action_type: str, table_name: str, record_id: Optional[str],
                      details: Dict[str, Any]) -> ActivityLogResult:
        admin_id = self.ensure_system_admin()
        entry = self.activity_repo.log_activity(
            user_id=admin_id,
            table_name=table_name,
            record_id=record_id,
            action_type=action_type,
            change_details=details,
        )
        return ActivityLogResult(ActivityOutcome.FALLBACK, user_id=admin_id, entry_id=entry["id"])
