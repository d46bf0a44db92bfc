"""
Trial Search
============
Predicate evaluation, sorting and dropdown values over in-memory trial
aggregates (the per-trial shape returned by ``fetch_all_trials``).

Criteria combine left to right: criterion *i*'s ``logic`` joins the running
result to criterion *i+1*, so ``[a OR, b AND, c]`` means ``(a or b) and c``.
Every criterion is evaluated; nothing short-circuits.
"""

import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, field_validator

from .coercion import to_string
from . import other_sources

Trial = Dict[str, Any]

NUMERIC_OPERATORS = {
    "greater_than": lambda a, b: a > b,
    "greater_than_equal": lambda a, b: a >= b,
    "less_than": lambda a, b: a < b,
    "less_than_equal": lambda a, b: a <= b,
}

STRING_OPERATORS = {
    "contains": lambda f, v: v in f,
    "is": lambda f, v: f == v,
    "equals": lambda f, v: f == v,
    "is_not": lambda f, v: f != v,
    "not_equals": lambda f, v: f != v,
    "starts_with": lambda f, v: f.startswith(v),
    "ends_with": lambda f, v: f.endswith(v),
}

NEGATED_OPERATORS = {"is_not", "not_equals"}

_TAG_SEPARATORS = re.compile(r"[\s,]+")


class SearchCriterion(BaseModel):
    """One ``(field, operator, value, logic)`` search row."""
    model_config = ConfigDict(extra="ignore")

    field: str
    operator: str = "is"
    value: Union[List[str], str, None] = ""
    logic: str = "AND"

    @field_validator("value", mode="before")
    @classmethod
    def _scalar_to_text(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [to_string(v) for v in value if v is not None]
        if value is None or isinstance(value, str):
            return value
        return to_string(value)


CriterionLike = Union[SearchCriterion, Dict[str, Any]]


# =============================================================================
# FIELD RESOLUTION
# =============================================================================

def _first(section: str, column: str) -> Callable[[Trial], Any]:
    def accessor(trial: Trial) -> Any:
        rows = trial.get(section) or []
        return rows[0].get(column) if rows else None
    return accessor


def _overview(column: str) -> Callable[[Trial], Any]:
    return lambda trial: (trial.get("overview") or {}).get(column)


def _other_source_attribute(attribute: str) -> Callable[[Trial], Any]:
    def accessor(trial: Trial) -> Any:
        values = []
        for row in trial.get("other") or []:
            value = getattr(other_sources.parse(row.get("data")), attribute, None)
            if value:
                values.append(value)
        return values
    return accessor


_OVERVIEW_COLUMNS = (
    "therapeutic_area", "trial_identifier", "trial_phase", "status", "primary_drugs",
    "other_drugs", "title", "disease_type", "patient_segment", "line_of_therapy",
    "reference_links", "trial_tags", "sponsor_collaborators", "sponsor_field_activity",
    "associated_cro", "countries", "region", "trial_record_status", "created_at", "updated_at",
)

_SECTION_COLUMNS = {
    "outcomes": (
        "purpose_of_trial", "summary", "primary_outcome_measure", "other_outcome_measure",
        "study_design_keywords", "study_design", "treatment_regimen", "number_of_arms",
    ),
    "criteria": (
        "inclusion_criteria", "exclusion_criteria", "age_from", "age_to", "subject_type",
        "sex", "healthy_volunteers", "target_no_volunteers", "actual_enrolled_volunteers",
    ),
    "timing": (
        "start_date_estimated", "trial_end_date_estimated",
        "overall_duration_complete", "overall_duration_publish",
    ),
    "results": (
        "trial_outcome", "reference", "trial_results", "adverse_event_reported",
        "adverse_event_type", "treatment_for_adverse_events",
    ),
    "sites": (
        "total", "study_sites", "principal_investigators", "site_status",
        "site_countries", "site_regions",
    ),
}

FIELD_ACCESSORS: Dict[str, Callable[[Trial], Any]] = {
    "trial_id": lambda trial: trial.get("trial_id"),
    **{column: _overview(column) for column in _OVERVIEW_COLUMNS},
    **{
        column: _first(section, column)
        for section, columns in _SECTION_COLUMNS.items()
        for column in columns
    },
    # Trials without a target count as zero enrolled
    "enrollment": lambda trial: _first("criteria", "target_no_volunteers")(trial) or 0,
    "publication_type": _other_source_attribute("publication_type"),
    "registry_name": _other_source_attribute("registry"),
    "study_type": _other_source_attribute("study_type"),
}

# Names used by search forms and table headers
FIELD_ALIASES = {
    "trial_status": "status",
    "phase": "trial_phase",
    "primary_drug": "primary_drugs",
    "sponsor": "sponsor_collaborators",
    "gender": "sex",
    "age_min": "age_from",
    "age_max": "age_to",
    "total_sites": "total",
}


def _accessor(field: str) -> Optional[Callable[[Trial], Any]]:
    return FIELD_ACCESSORS.get(FIELD_ALIASES.get(field, field))


def get_raw_value(trial: Trial, field: str) -> Any:
    accessor = _accessor(field)
    return accessor(trial) if accessor else None


def resolve_field(trial: Trial, field: str) -> str:
    """Field value as display text; lists are comma-joined, unknown fields are ''."""
    value = get_raw_value(trial, field)
    if value is None:
        return ""
    return to_string(value)


# =============================================================================
# EVALUATION
# =============================================================================

def _parse_float(value: Any) -> Optional[float]:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def compare(field_value: str, operator: str, value: Optional[str]) -> bool:
    """Apply one operator; unknown operators match everything."""
    operator = (operator or "").lower()

    if operator in NUMERIC_OPERATORS:
        left, right = _parse_float(field_value), _parse_float(value)
        if left is None or right is None:
            return False
        return NUMERIC_OPERATORS[operator](left, right)

    check = STRING_OPERATORS.get(operator)
    if check is None:
        return True
    return check(field_value.lower(), (value or "").lower())


def tags_present(trial: Trial, tags: Iterable[str]) -> bool:
    """True when every tag occurs in the trial's tags or disease type."""
    overview = trial.get("overview") or {}
    combined = " ".join(
        to_string(overview.get(column)) for column in ("trial_tags", "disease_type")
        if overview.get(column) is not None
    ).lower()
    tokens = set(t for t in _TAG_SEPARATORS.split(combined) if t)

    for tag in tags:
        needle = tag.strip().lower()
        if not needle:
            continue
        if needle not in combined and needle not in tokens:
            return False
    return True


def evaluate_criterion(trial: Trial, criterion: SearchCriterion) -> bool:
    value = criterion.value

    if isinstance(value, list):
        if criterion.field == "trial_tags":
            return tags_present(trial, value)
        if not value:
            return True
        field_value = resolve_field(trial, criterion.field)
        matches = [compare(field_value, criterion.operator, v) for v in value]
        if criterion.operator.lower() in NEGATED_OPERATORS:
            return all(matches)
        return any(matches)

    return compare(resolve_field(trial, criterion.field), criterion.operator, value)


def _as_criteria(criteria: Sequence[CriterionLike]) -> List[SearchCriterion]:
    return [c if isinstance(c, SearchCriterion) else SearchCriterion.model_validate(c) for c in criteria]


def evaluate(trial: Trial, criteria: Sequence[CriterionLike]) -> bool:
    """
    Evaluate search criteria against one trial.

    Args:
        trial: Trial aggregate with ``overview`` and section lists
        criteria: Search rows; each row's ``logic`` (AND/OR) connects it to
            the next row

    Returns:
        True if the trial matches; always True for an empty list
    """
    criteria = _as_criteria(criteria)
    if not criteria:
        return True

    results = [evaluate_criterion(trial, c) for c in criteria]

    outcome = results[0]
    for connective, current in zip(criteria, results[1:]):
        if connective.logic.strip().upper() == "OR":
            outcome = outcome or current
        else:
            outcome = outcome and current
    return outcome


def filter_trials(trials: Iterable[Trial], criteria: Sequence[CriterionLike]) -> List[Trial]:
    criteria = _as_criteria(criteria)
    return [trial for trial in trials if evaluate(trial, criteria)]


# =============================================================================
# SORTING AND DROPDOWN VALUES
# =============================================================================

def get_sort_value(trial: Trial, field: str):
    """Sort key: numbers compare numerically, everything else as lowercase text."""
    value = get_raw_value(trial, field)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value, "")
    return (1, 0, resolve_field(trial, field).lower())


def sort_trials(trials: Iterable[Trial], field: Optional[str], direction: str = "asc") -> List[Trial]:
    trials = list(trials)
    if not field:
        return trials
    return sorted(
        trials,
        key=lambda trial: get_sort_value(trial, field),
        reverse=(direction or "asc").lower() == "desc",
    )


def unique_field_values(trials: Iterable[Trial], field: str) -> List[str]:
    """Distinct non-empty values of a field, sorted, for dropdown options."""
    values = set()
    for trial in trials:
        value = resolve_field(trial, field).strip()
        if value:
            values.add(value)
    return sorted(values)


PHASE_MAPPINGS = {
    "phase i": "Phase I",
    "phase 1": "Phase I",
    "phase 1/2": "Phase I/II",
    "phase ii": "Phase II",
    "phase 2": "Phase II",
    "phase 2/3": "Phase II/III",
    "phase iii": "Phase III",
    "phase 3": "Phase III",
    "phase iv": "Phase IV",
    "phase 4": "Phase IV",
    "pre-clinical": "Pre-clinical",
    "not applicable": "Not Applicable",
    "n/a": "Not Applicable",
}


def normalize_phase_value(phase: Optional[str]) -> str:
    if not phase:
        return ""
    return PHASE_MAPPINGS.get(phase.strip().lower(), phase)


def phases_equivalent(first: Optional[str], second: Optional[str]) -> bool:
    if not first or not second:
        return False
    return normalize_phase_value(first).lower() == normalize_phase_value(second).lower()
