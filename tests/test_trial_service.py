import pytest
from sqlalchemy.exc import DataError

from trialbyte.database.models import TRIAL_SECTION_MODELS, TrialOverview, UserActivity
from trialbyte.database.repositories import ActivityLogRepository, UserRepository
from trialbyte.therapeutics import other_sources
from trialbyte.therapeutics.errors import (
    InternalError, InvalidPayload, MalformedArrayField, MissingOverview, MissingTrialId, MissingUserId,
    TrialNotFound,
)
from trialbyte.therapeutics.other_sources import LegacySource, PublicationSource, TrialRegistrySource


class FakePgError(Exception):
    pgcode = "22P02"


def _row_count(db, model):
    with db.session() as session:
        return session.query(model).count()


def _activity(db):
    return ActivityLogRepository(db).get_recent(limit=1000)


def test_create_then_fetch_round_trips_every_section(trial_service, make_payload, user_id):
    created = trial_service.create_trial(make_payload(user_id))
    fetched = trial_service.fetch_trial(created["trial_id"])

    assert fetched["trial_id"] == created["trial_id"]
    data = fetched["data"]
    assert data["overview"]["title"] == "A study of Drug A in NSCLC"
    assert data["outcomes"][0]["purpose_of_trial"] == "Evaluate efficacy"
    assert data["outcomes"][0]["number_of_arms"] == 2
    assert data["criteria"][0]["inclusion_criteria"] == "Adults with NSCLC"
    assert data["timing"][0]["start_date_estimated"] == "2024-01-15"
    assert data["results"][0]["trial_outcome"] == "Completed"
    assert data["sites"][0]["total"] == 12
    assert data["logs"][0]["trial_changes_log"] == "Initial entry"
    assert data["notes"][0]["attachments"] == ["protocol.pdf"]
    assert len(data["other"]) == 2
    for key in ("outcomes", "criteria", "timing", "results", "sites", "logs", "notes"):
        assert len(data[key]) == 1
        assert data[key][0]["trial_id"] == created["trial_id"]


def test_create_normalizes_array_and_string_fields(trial_service, make_payload, user_id):
    created = trial_service.create_trial(make_payload(user_id))
    data = created["data"]

    assert created["trial_identifier"] == "NCT0001"
    assert data["overview"]["trial_identifier"] == ["NCT0001", "EU-2024-01"]
    assert data["overview"]["sponsor_collaborators"] == "Acme Pharma, Beta Bio"
    assert data["overview"]["primary_drugs"] == "Drug A, Drug B"
    assert data["criteria"]["age_from"] == "18"
    assert data["criteria"]["healthy_volunteers"] == "false"
    assert data["results"]["trial_results"] == ["ORR 40%", "PFS 8 months"]
    assert data["results"]["adverse_event_reported"] == "true"
    assert data["sites"]["study_sites"] == ["Site 1", "Site 2"]


def test_create_without_identifier_returns_none(trial_service, user_id):
    created = trial_service.create_trial({"user_id": user_id, "overview": {"title": "Bare"}})

    assert created["trial_identifier"] is None
    assert list(created["data"]) == ["overview"]


def test_multi_category_other_sources_are_tagged(db, trial_service, make_payload, user_id):
    created = trial_service.create_trial(make_payload(user_id))

    rows = created["data"]["other_sources"]
    parsed = [other_sources.parse(row["data"]) for row in rows]
    assert isinstance(parsed[0], PublicationSource)
    assert parsed[0].publication_type == "Journal"
    assert isinstance(parsed[1], TrialRegistrySource)

    batch = [a for a in _activity(db) if a["table_name"] == "therapeutic_other_sources"]
    assert len(batch) == 1
    assert batch[0]["record_id"] == created["trial_id"]
    assert batch[0]["change_details"] == {"count": 2, "sections": ["publications", "trial_registries"]}


def test_flat_other_object_is_stored_as_legacy(trial_service, user_id):
    created = trial_service.create_trial({
        "user_id": user_id,
        "overview": {"title": "Legacy"},
        "other": {"data": "Imported from spreadsheet"},
    })

    row = created["data"]["other"]
    parsed = other_sources.parse(row["data"])
    assert isinstance(parsed, LegacySource)
    assert parsed.raw == "Imported from spreadsheet"


def test_other_sources_key_wins_over_other(trial_service, user_id):
    created = trial_service.create_trial({
        "user_id": user_id,
        "overview": {"title": "Both"},
        "other_sources": {"press_releases": [{"title": "Topline"}]},
        "other": {"data": "ignored"},
    })

    assert "other" not in created["data"]
    assert len(created["data"]["other_sources"]) == 1


def test_empty_source_categories_create_no_rows(db, trial_service, user_id):
    created = trial_service.create_trial({
        "user_id": user_id,
        "overview": {"title": "No sources"},
        "other_sources": {category: [] for category in other_sources.CATEGORY_VARIANTS},
    })

    assert list(created["data"]) == ["overview"]
    assert trial_service.fetch_trial(created["trial_id"])["data"]["other"] == []
    assert not [a for a in _activity(db) if a["table_name"] == "therapeutic_other_sources"]


def test_numeric_source_fields_are_accepted(trial_service, user_id):
    created = trial_service.create_trial({
        "user_id": user_id,
        "overview": {"title": "Numbers"},
        "other_sources": {"trial_registries": [{"registry": "EUCTR", "identifier": 12345}]},
    })

    (row,) = trial_service.fetch_trial(created["trial_id"])["data"]["other"]
    assert other_sources.parse(row["data"]).identifier == "12345"


def test_invalid_source_item_is_rejected_before_writing(db, trial_service, user_id):
    with pytest.raises(InvalidPayload) as exc_info:
        trial_service.create_trial({
            "user_id": user_id,
            "overview": {"title": "Bad source"},
            "other_sources": {"publications": [{"title": {"nested": True}}]},
        })

    assert exc_info.value.status_code == 400
    assert _row_count(db, TrialOverview) == 0


def test_create_logs_each_section_and_a_summary(db, trial_service, make_payload, user_id):
    created = trial_service.create_trial(make_payload(user_id))

    entries = _activity(db)
    tables = {e["table_name"] for e in entries}
    assert {
        "therapeutic_trial_overview", "therapeutic_outcome_measured",
        "therapeutic_participation_criteria", "therapeutic_timing", "therapeutic_results",
        "therapeutic_sites", "therapeutic_other_sources", "therapeutic_logs",
        "therapeutic_notes", "therapeutic_trial_summary",
    } == tables
    assert all(e["user_id"] == user_id for e in entries)

    (summary,) = [e for e in entries if e["table_name"] == "therapeutic_trial_summary"]
    assert summary["record_id"] == created["trial_id"]
    assert summary["change_details"]["trial_title"] == "A study of Drug A in NSCLC"
    assert summary["change_details"]["trial_phase"] == "2"
    assert summary["change_details"]["sections_created"] == 9
    assert summary["change_details"]["created_sections"][0] == "overview"


@pytest.mark.parametrize("payload, error", [
    ({"overview": {"title": "x"}}, MissingUserId),
    ({"user_id": "u1"}, MissingOverview),
    ({"user_id": "u1", "overview": {}}, MissingOverview),
    (None, MissingUserId),
])
def test_create_validates_before_writing(db, trial_service, payload, error):
    with pytest.raises(error) as exc_info:
        trial_service.create_trial(payload)

    assert exc_info.value.status_code == 400
    assert _row_count(db, TrialOverview) == 0
    assert _activity(db) == []


def test_unknown_user_is_logged_under_system_admin(db, trial_service, make_payload):
    created = trial_service.create_trial(make_payload("not-a-real-user"))

    assert trial_service.fetch_trial(created["trial_id"])["trial_id"] == created["trial_id"]
    admin = UserRepository(db).find_by_username("admin")
    entries = _activity(db)
    assert entries
    assert all(e["user_id"] == admin["user_id"] for e in entries)
    assert all(e["change_details"]["original_user"] == "not-a-real-user" for e in entries)


def test_malformed_array_error_maps_to_400(trial_service, make_payload, user_id, monkeypatch):
    def reject(data, session=None):
        raise DataError("INSERT INTO therapeutic_trial_overview", {}, FakePgError("malformed array literal"))

    monkeypatch.setattr(trial_service.overview_repo, "create", reject)

    with pytest.raises(MalformedArrayField) as exc_info:
        trial_service.create_trial(make_payload(user_id))

    error = exc_info.value
    assert error.status_code == 400
    assert error.code == "22P02"
    assert error.message == "Invalid data format - array field error"
    assert "trial_identifier" in error.error
    assert "malformed array literal" in error.error


def test_unexpected_error_maps_to_500(trial_service, make_payload, user_id, monkeypatch):
    def explode(data, session=None):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(trial_service.overview_repo, "create", explode)

    with pytest.raises(InternalError) as exc_info:
        trial_service.create_trial(make_payload(user_id))

    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "Failed to create trial"
    assert exc_info.value.error == "connection reset"


def test_partial_failure_keeps_earlier_rows_by_default(db, trial_service, make_payload, user_id, monkeypatch):
    def explode(data, session=None):
        raise RuntimeError("notes table unavailable")

    monkeypatch.setattr(trial_service.section_repos["notes"], "create", explode)

    with pytest.raises(InternalError):
        trial_service.create_trial(make_payload(user_id))

    assert _row_count(db, TrialOverview) == 1
    tables = {e["table_name"] for e in _activity(db)}
    assert "therapeutic_trial_overview" in tables
    assert "therapeutic_trial_summary" not in tables


def test_atomic_mode_rolls_back_everything(db, atomic_trial_service, make_payload, user_id, monkeypatch):
    def explode(data, session=None):
        raise RuntimeError("notes table unavailable")

    monkeypatch.setattr(atomic_trial_service.section_repos["notes"], "create", explode)

    with pytest.raises(InternalError):
        atomic_trial_service.create_trial(make_payload(user_id))

    assert _row_count(db, TrialOverview) == 0
    for model in TRIAL_SECTION_MODELS:
        assert _row_count(db, model) == 0
    assert _row_count(db, UserActivity) == 0


def test_atomic_mode_create_and_delete(db, atomic_trial_service, make_payload, user_id):
    created = atomic_trial_service.create_trial(make_payload(user_id))
    assert atomic_trial_service.fetch_trial(created["trial_id"])["data"]["outcomes"]

    result = atomic_trial_service.delete_trial(created["trial_id"], user_id)
    assert result["total_records_deleted"] == 10
    assert _row_count(db, TrialOverview) == 0


def test_fetch_missing_trial(trial_service):
    with pytest.raises(TrialNotFound) as exc_info:
        trial_service.fetch_trial("does-not-exist")
    assert exc_info.value.status_code == 404

    with pytest.raises(MissingTrialId):
        trial_service.fetch_trial("")


def test_fetch_trial_defaults_missing_sections_to_empty_lists(trial_service, user_id):
    created = trial_service.create_trial({"user_id": user_id, "overview": {"title": "Sparse"}})

    data = trial_service.fetch_trial(created["trial_id"])["data"]
    for key in ("outcomes", "criteria", "timing", "results", "sites", "other", "logs", "notes"):
        assert data[key] == []


def test_fetch_all_trials(trial_service, make_payload, user_id):
    assert trial_service.fetch_all_trials() == {"total_trials": 0, "trials": []}

    first = trial_service.create_trial(make_payload(user_id))
    second = trial_service.create_trial({"user_id": user_id, "overview": {"title": "Second"}})

    result = trial_service.fetch_all_trials()
    assert result["total_trials"] == 2
    by_id = {t["trial_id"]: t for t in result["trials"]}
    assert set(by_id) == {first["trial_id"], second["trial_id"]}
    assert len(by_id[first["trial_id"]]["outcomes"]) == 1
    assert len(by_id[first["trial_id"]]["other"]) == 2
    assert by_id[second["trial_id"]]["outcomes"] == []
    assert by_id[second["trial_id"]]["overview"]["title"] == "Second"


def test_cascade_delete_removes_every_row(db, trial_service, make_payload, user_id):
    created = trial_service.create_trial(make_payload(user_id))
    keep = trial_service.create_trial({"user_id": user_id, "overview": {"title": "Keep"}, "notes": {"notes": "x"}})

    result = trial_service.delete_trial(created["trial_id"], user_id)

    assert result["success"] is True
    assert result["trial_info"] == {
        "id": created["trial_id"],
        "trial_identifier": "NCT0001",
        "title": "A study of Drug A in NSCLC",
    }
    assert result["deletion_summary"] == {
        "outcomes": 1, "criteria": 1, "timing": 1, "results": 1, "sites": 1,
        "other_sources": 2, "logs": 1, "notes": 1, "overview": 1,
    }
    assert result["total_records_deleted"] == 10

    with pytest.raises(TrialNotFound):
        trial_service.fetch_trial(created["trial_id"])
    assert trial_service.fetch_trial(keep["trial_id"])["data"]["notes"]

    (entry,) = [e for e in _activity(db) if e["action_type"] == "DELETE"]
    assert entry["record_id"] == created["trial_id"]
    assert entry["change_details"]["deleted_trial"]["therapeutic_area"] == "Oncology"
    assert entry["change_details"]["total_records_deleted"] == 10


def test_delete_validation(trial_service, user_id):
    with pytest.raises(MissingTrialId):
        trial_service.delete_trial("", user_id)
    with pytest.raises(MissingUserId):
        trial_service.delete_trial("t1", "")
    with pytest.raises(TrialNotFound):
        trial_service.delete_trial("t1", user_id)
