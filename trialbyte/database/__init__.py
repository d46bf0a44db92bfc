"""
TRIALBYTE - Database Package
============================
PostgreSQL persistence for therapeutic trials, users and activity logs.
"""

from .config import DatabaseConfig, DEFAULT_CONFIG
from .connection import DatabaseManager, get_db_manager, reset_db_manager
from .models import Base, TrialOverview, User, UserActivity, TRIAL_SECTION_MODELS

__all__ = [
    'DatabaseConfig',
    'DEFAULT_CONFIG',
    'DatabaseManager',
    'get_db_manager',
    'reset_db_manager',
    'Base',
    'TrialOverview',
    'User',
    'UserActivity',
    'TRIAL_SECTION_MODELS',
]
