"""
Field Coercion
==============
Declarative intake normalization for loosely typed client payloads.

Each section maps field names to a rule. Rules only touch fields that are
present and not None; everything else passes through unchanged.
"""

import json
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class FieldRule(str, Enum):
    ARRAY = "array"                          # list of strings
    STRING = "string"                        # lists collapse to ", "-joined text
    NUMBER_AS_STRING = "number_as_string"    # 18 -> "18"
    BOOLEAN_AS_STRING = "boolean_as_string"  # True -> "true"
    INTEGER = "integer"                      # "12" -> 12, "" -> None


def _text(value: Any) -> str:
    """Render a scalar the way a JSON client would display it."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def to_array(value: Any) -> List[str]:
    """
    Normalize to a list of strings.

    Comma-separated text is split and trimmed, dropping empty items;
    a lone scalar becomes a one-element list.
    """
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [_text(item) for item in value]
    return [_text(value)]


def to_string(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(_text(item) for item in value)
    return _text(value)


def number_as_string(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _text(value)
    return value


def boolean_as_string(value: Any) -> Any:
    if isinstance(value, bool):
        return _text(value)
    return value


def to_integer(value: Any) -> Optional[Any]:
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return int(stripped)
        except ValueError:
            # Left for the database to reject
            return value
    return value


_RULES: Dict[FieldRule, Callable[[Any], Any]] = {
    FieldRule.ARRAY: to_array,
    FieldRule.STRING: to_string,
    FieldRule.NUMBER_AS_STRING: number_as_string,
    FieldRule.BOOLEAN_AS_STRING: boolean_as_string,
    FieldRule.INTEGER: to_integer,
}


# =============================================================================
# SECTION SCHEMAS
# =============================================================================

COERCION_SCHEMAS: Dict[str, Dict[str, FieldRule]] = {
    "overview": {
        "trial_identifier": FieldRule.ARRAY,
        "reference_links": FieldRule.ARRAY,
        "primary_drugs": FieldRule.STRING,
        "other_drugs": FieldRule.STRING,
        "trial_tags": FieldRule.STRING,
        "sponsor_collaborators": FieldRule.STRING,
        "countries": FieldRule.STRING,
        "region": FieldRule.STRING,
    },
    "outcome": {
        "study_design_keywords": FieldRule.STRING,
        "number_of_arms": FieldRule.INTEGER,
    },
    "criteria": {
        "age_from": FieldRule.NUMBER_AS_STRING,
        "age_to": FieldRule.NUMBER_AS_STRING,
        "healthy_volunteers": FieldRule.BOOLEAN_AS_STRING,
        "target_no_volunteers": FieldRule.INTEGER,
        "actual_enrolled_volunteers": FieldRule.INTEGER,
    },
    "timing": {},
    "results": {
        "trial_results": FieldRule.ARRAY,
        "adverse_event_reported": FieldRule.BOOLEAN_AS_STRING,
    },
    "sites": {
        "total": FieldRule.INTEGER,
        "study_sites": FieldRule.ARRAY,
        "principal_investigators": FieldRule.ARRAY,
        "site_countries": FieldRule.ARRAY,
        "site_regions": FieldRule.ARRAY,
        "site_contact_info": FieldRule.ARRAY,
    },
    "other": {},
    "logs": {},
    "notes": {
        "attachments": FieldRule.ARRAY,
    },
}


def coerce_fields(data: Dict[str, Any], schema: Dict[str, FieldRule]) -> Dict[str, Any]:
    """Return a copy of ``data`` with each scheduled field normalized."""
    processed = dict(data)
    for field, rule in schema.items():
        if processed.get(field) is not None:
            processed[field] = _RULES[rule](processed[field])
    return processed


def coerce_section(section: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return coerce_fields(data, COERCION_SCHEMAS.get(section, {}))
