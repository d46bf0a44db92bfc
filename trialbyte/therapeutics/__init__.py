"""
TRIALBYTE - Therapeutics
========================
Trial aggregate orchestration, per-section CRUD and trial search.
"""

from .errors import TrialServiceError
from .orchestrator import TrialAggregateService
from .sections import TrialSectionService, SECTIONS_BY_NAME
from .search import SearchCriterion, evaluate, filter_trials, sort_trials

__all__ = [
    'TrialServiceError',
    'TrialAggregateService',
    'TrialSectionService',
    'SECTIONS_BY_NAME',
    'SearchCriterion',
    'evaluate',
    'filter_trials',
    'sort_trials',
]
