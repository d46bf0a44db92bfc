"""
TRIALBYTE - Auth Module
=======================
Password hashing and user activity logging.
"""

from .password import PasswordHandler
from .audit import (
    ActivityLogger,
    ActivityLogResult,
    ActivityOutcome,
    SystemAdminAccount,
)

__all__ = [
    'PasswordHandler',
    'ActivityLogger',
    'ActivityLogResult',
    'ActivityOutcome',
    'SystemAdminAccount',
]
