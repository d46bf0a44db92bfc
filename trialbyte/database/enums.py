"""
TRIALBYTE - Database Enumerations
=================================
Enumerated values shared by models, repositories and the activity log.
"""

from enum import Enum


# =============================================================================
# ACTIVITY LOG ENUMS
# =============================================================================

class ActivityAction(str, Enum):
    """Action types written to the user activity log."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class TherapeuticTable(str, Enum):
    """Table names recorded in activity log entries."""
    OVERVIEW = "therapeutic_trial_overview"
    OUTCOME = "therapeutic_outcome_measured"
    CRITERIA = "therapeutic_participation_criteria"
    TIMING = "therapeutic_timing"
    RESULTS = "therapeutic_results"
    SITES = "therapeutic_sites"
    OTHER_SOURCES = "therapeutic_other_sources"
    LOGS = "therapeutic_logs"
    NOTES = "therapeutic_notes"
    # Pseudo-table used for the whole-trial creation summary entry
    TRIAL_SUMMARY = "therapeutic_trial_summary"


# =============================================================================
# OTHER SOURCES
# =============================================================================

class SourceCategory(str, Enum):
    """Tagged categories of supplementary trial sources."""
    PIPELINE_DATA = "pipeline_data"
    PRESS_RELEASES = "press_releases"
    PUBLICATIONS = "publications"
    TRIAL_REGISTRIES = "trial_registries"
    ASSOCIATED_STUDIES = "associated_studies"
    LEGACY = "legacy"
