import pytest

from trialbyte.database.repositories import ActivityLogRepository
from trialbyte.therapeutics.errors import InvalidPayload, MissingUserId, RecordNotFound


def test_create_update_delete_are_logged(db, section_service, user_id):
    created = section_service.create("sites", {
        "user_id": user_id, "trial_id": "t1", "total": "4", "site_countries": "France, Spain",
    })
    assert created["total"] == 4
    assert created["site_countries"] == ["France", "Spain"]

    section_service.update("sites", created["id"], {"user_id": user_id, "total": 5})
    section_service.delete("sites", created["id"], user_id)

    history = ActivityLogRepository(db).get_by_record("therapeutic_sites", created["id"])
    by_action = {h["action_type"]: h for h in history}
    assert set(by_action) == {"INSERT", "UPDATE", "DELETE"}
    assert by_action["UPDATE"]["change_details"]["before"]["total"] == 4
    assert by_action["UPDATE"]["change_details"]["after"]["total"] == 5


def test_user_id_is_not_stored_as_a_column(section_service, user_id):
    created = section_service.create("notes", {"user_id": user_id, "trial_id": "t1", "notes": "x"})
    assert "user_id" not in created


def test_update_and_delete_unknown_record(section_service, user_id):
    with pytest.raises(RecordNotFound) as exc_info:
        section_service.update("timing", "missing", {"user_id": user_id})
    assert exc_info.value.message == "Therapeutic timing not found"

    with pytest.raises(RecordNotFound):
        section_service.delete("timing", "missing", user_id)


def test_delete_requires_user_id(section_service):
    with pytest.raises(MissingUserId):
        section_service.delete("notes", "n1", None)


def test_unknown_section(section_service):
    with pytest.raises(RecordNotFound):
        section_service.list("protocols")


def test_trial_scoped_operations_reject_overview(section_service):
    with pytest.raises(RecordNotFound):
        section_service.delete_by_trial("overview", "t1")


def test_invalid_other_source_variant(section_service, user_id):
    with pytest.raises(InvalidPayload):
        section_service.create("other", {
            "user_id": user_id, "trial_id": "t1", "data": {"type": "publications", "title": ["not", "text"]},
        })
