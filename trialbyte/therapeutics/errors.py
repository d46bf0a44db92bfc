"""
Therapeutic Service Errors
==========================
Error taxonomy of the trial aggregate operations. Each error carries the
HTTP status and message the API layer renders.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

logger = logging.getLogger(__name__)

INVALID_TEXT_REPRESENTATION = "22P02"


class TrialServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None,
                 code: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.error = error
        self.code = code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        if self.error is not None:
            body["error"] = self.error
        if self.code is not None:
            body["code"] = self.code
        if self.details is not None:
            body["details"] = self.details
        return body


class MissingUserId(TrialServiceError):
    status_code = 400
    default_message = "user_id is required for activity logging"


class MissingOverview(TrialServiceError):
    status_code = 400
    default_message = "overview data is required"


class MissingTrialId(TrialServiceError):
    status_code = 400
    default_message = "trial_id is required"


class RecordNotFound(TrialServiceError):
    status_code = 404
    default_message = "Record not found"

    @classmethod
    def for_resource(cls, resource: str) -> "RecordNotFound":
        return cls(f"{resource} not found")


class TrialNotFound(RecordNotFound):
    default_message = "Therapeutic trial not found"


class MalformedArrayField(TrialServiceError):
    status_code = 400
    default_message = "Invalid data format - array field error"

    @classmethod
    def from_exception(cls, exc: BaseException) -> "MalformedArrayField":
        orig = getattr(exc, "orig", None)
        return cls(
            error=(
                "Database array format error. Please check: trial_identifier and "
                "reference_links should be arrays, trial_results should be an array. "
                f"Error: {orig or exc}"
            ),
            code=INVALID_TEXT_REPRESENTATION,
            details=str(getattr(getattr(orig, "diag", None), "message_detail", None) or "") or None,
        )


class InternalError(TrialServiceError):
    status_code = 500
    default_message = "Internal server error"


def is_malformed_array_error(exc: BaseException) -> bool:
    """True when the database rejected a value's text representation."""
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) == INVALID_TEXT_REPRESENTATION


class InvalidPayload(TrialServiceError):
    status_code = 400
    default_message = "Invalid request payload"


@contextmanager
def translate_errors(message: str) -> Generator[None, None, None]:
    """
    Re-raise unexpected failures as client-facing errors.

    Service errors pass through; rejected array literals become
    ``MalformedArrayField``; anything else becomes ``InternalError`` with the
    raw message attached.
    """
    try:
        yield
    except TrialServiceError:
        raise
    except Exception as e:
        if is_malformed_array_error(e):
            logger.error(f"{message}: database rejected an array value: {e}")
            raise MalformedArrayField.from_exception(e) from e
        logger.exception(message)
        raise InternalError(message, error=str(e)) from e
