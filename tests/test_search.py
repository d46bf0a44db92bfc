import json

import pytest

from trialbyte.therapeutics.search import (
    SearchCriterion, evaluate, filter_trials, normalize_phase_value, phases_equivalent,
    resolve_field, sort_trials, unique_field_values,
)


def make_trial(trial_id="t1", **overview):
    base = {
        "therapeutic_area": "Oncology",
        "trial_phase": "2",
        "status": "Planned",
        "title": "A study of Drug A",
        "disease_type": "Lung Cancer",
        "trial_tags": "cancer, phase2, oncology",
        "trial_identifier": ["NCT0001", "EU-2024-01"],
    }
    base.update(overview)
    return {
        "trial_id": trial_id,
        "overview": base,
        "outcomes": [{"study_design": "Randomized", "number_of_arms": 2}],
        "criteria": [{"sex": "Female", "age_from": "18", "target_no_volunteers": 120}],
        "timing": [],
        "results": [{"trial_outcome": "Completed", "trial_results": ["ORR 40%", "PFS 8m"]}],
        "sites": [{"total": 12}],
        "other": [
            {"data": json.dumps({"type": "publications", "publicationType": "Journal", "title": "x"})},
            {"data": json.dumps({"type": "trial_registries", "registry": "EUCTR"})},
            {"data": "legacy text"},
        ],
        "logs": [],
        "notes": [],
    }


def test_empty_criteria_match_everything():
    assert evaluate(make_trial(), []) is True


def test_each_criterion_logic_connects_to_the_next():
    criteria = [
        {"field": "status", "value": "Active", "logic": "OR"},
        {"field": "trial_phase", "value": "2"},
    ]
    assert evaluate(make_trial(), criteria) is True

    criteria[0]["logic"] = "AND"
    assert evaluate(make_trial(), criteria) is False


def test_fold_is_left_associative():
    # (true OR false) AND false, not true OR (false AND false)
    criteria = [
        {"field": "status", "operator": "is", "value": "planned", "logic": "OR"},
        {"field": "status", "operator": "is", "value": "closed", "logic": "AND"},
        {"field": "trial_phase", "operator": "is", "value": "3"},
    ]
    assert evaluate(make_trial(), criteria) is False


def test_trial_tags_list_requires_every_tag():
    trial = make_trial()
    assert evaluate(trial, [{"field": "trial_tags", "value": ["cancer", "oncology"]}]) is True
    assert evaluate(make_trial(trial_tags="cancer"), [{"field": "trial_tags", "value": ["cancer", "oncology"]}]) is False


def test_trial_tags_search_includes_disease_type_and_substrings():
    trial = make_trial(trial_tags="immunotherapy")
    assert evaluate(trial, [{"field": "trial_tags", "value": ["LUNG", "immuno"]}]) is True
    assert evaluate(trial, [{"field": "trial_tags", "value": ["cardio"]}]) is False


@pytest.mark.parametrize("operator, value, expected", [
    ("contains", "drug a", True),
    ("contains", "drug b", False),
    ("is", "a study of drug a", True),
    ("equals", "A STUDY OF DRUG A", True),
    ("is_not", "something else", True),
    ("not_equals", "a study of drug a", False),
    ("starts_with", "a study", True),
    ("ends_with", "drug a", True),
    ("ends_with", "study", False),
    ("no_such_operator", "anything", True),
])
def test_string_operators_are_case_insensitive(operator, value, expected):
    criteria = [{"field": "title", "operator": operator, "value": value}]
    assert evaluate(make_trial(), criteria) is expected


@pytest.mark.parametrize("operator, value, expected", [
    ("greater_than", "17", True),
    ("greater_than", "18", False),
    ("greater_than_equal", "18", True),
    ("less_than", "18.5", True),
    ("less_than_equal", "17.9", False),
    ("greater_than", "not a number", False),
])
def test_numeric_operators(operator, value, expected):
    criteria = [{"field": "age_min", "operator": operator, "value": value}]
    assert evaluate(make_trial(), criteria) is expected


def test_numeric_operator_on_text_field_is_false():
    assert evaluate(make_trial(), [{"field": "title", "operator": "greater_than", "value": 1}]) is False


def test_field_resolution():
    trial = make_trial()
    assert resolve_field(trial, "gender") == "Female"
    assert resolve_field(trial, "enrollment") == "120"
    assert resolve_field(trial, "number_of_arms") == "2"
    assert resolve_field(trial, "trial_identifier") == "NCT0001, EU-2024-01"
    assert resolve_field(trial, "trial_results") == "ORR 40%, PFS 8m"
    assert resolve_field(trial, "trial_status") == "Planned"
    assert resolve_field(trial, "start_date_estimated") == ""
    assert resolve_field(trial, "publication_type") == "Journal"
    assert resolve_field(trial, "registry_name") == "EUCTR"
    assert resolve_field(trial, "no_such_field") == ""


def test_missing_enrollment_counts_as_zero():
    trial = make_trial()
    trial["criteria"] = []

    assert resolve_field(trial, "enrollment") == "0"
    assert evaluate(trial, [{"field": "enrollment", "operator": "less_than", "value": "10"}]) is True
    assert resolve_field(trial, "target_no_volunteers") == ""


def test_unknown_field_resolves_to_empty_string():
    assert evaluate(make_trial(), [{"field": "no_such_field", "operator": "is", "value": ""}]) is True
    assert evaluate(make_trial(), [{"field": "no_such_field", "operator": "contains", "value": "x"}]) is False


def test_list_value_on_regular_field_matches_any():
    trial = make_trial()
    assert evaluate(trial, [{"field": "status", "operator": "is", "value": ["Active", "Planned"]}]) is True
    assert evaluate(trial, [{"field": "status", "operator": "is_not", "value": ["Active", "Planned"]}]) is False


def test_criterion_defaults():
    criterion = SearchCriterion(field="sites_total", value=3)
    assert criterion.operator == "is"
    assert criterion.logic == "AND"
    assert criterion.value == "3"


def test_filter_trials():
    trials = [make_trial("t1"), make_trial("t2", status="Active"), make_trial("t3", status="Closed")]
    criteria = [
        {"field": "status", "operator": "is", "value": "active", "logic": "OR"},
        {"field": "status", "operator": "is", "value": "closed"},
    ]
    assert [t["trial_id"] for t in filter_trials(trials, criteria)] == ["t2", "t3"]


def test_sort_trials():
    trials = [
        make_trial("t1", therapeutic_area="oncology"),
        make_trial("t2", therapeutic_area="Cardiology"),
        make_trial("t3", therapeutic_area="neurology"),
    ]
    assert [t["trial_id"] for t in sort_trials(trials, "therapeutic_area")] == ["t2", "t3", "t1"]
    assert [t["trial_id"] for t in sort_trials(trials, "therapeutic_area", "desc")] == ["t1", "t3", "t2"]
    assert sort_trials(trials, None) == trials


def test_sort_trials_numerically():
    small, large = make_trial("small"), make_trial("large")
    small["criteria"][0]["target_no_volunteers"] = 9
    large["criteria"][0]["target_no_volunteers"] = 100
    assert [t["trial_id"] for t in sort_trials([large, small], "enrollment")] == ["small", "large"]


def test_unique_field_values():
    trials = [make_trial("t1"), make_trial("t2", status="Active"), make_trial("t3", status=" Active "), make_trial("t4", status=None)]
    assert unique_field_values(trials, "status") == ["Active", "Planned"]


def test_phase_normalization():
    assert normalize_phase_value("phase 2") == "Phase II"
    assert normalize_phase_value(" Phase 1/2 ") == "Phase I/II"
    assert normalize_phase_value("n/a") == "Not Applicable"
    assert normalize_phase_value("Phase 0") == "Phase 0"
    assert normalize_phase_value(None) == ""
    assert phases_equivalent("Phase 3", "phase iii")
    assert not phases_equivalent("Phase 3", "Phase 2")
    assert not phases_equivalent("", "Phase 2")
