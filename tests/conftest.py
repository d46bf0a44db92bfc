import pytest
from fastapi.testclient import TestClient

from trialbyte.auth.audit import ActivityLogger
from trialbyte.auth.password import PasswordHandler
from trialbyte.database.config import DatabaseConfig
from trialbyte.database.connection import DatabaseManager
from trialbyte.database.repositories import ActivityLogRepository, UserRepository
from trialbyte.therapeutics.orchestrator import TrialAggregateService
from trialbyte.therapeutics.sections import TrialSectionService


@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(DatabaseConfig(url=f"sqlite:///{tmp_path / 'trialbyte.db'}"))
    manager.create_tables()
    yield manager
    manager.close()


@pytest.fixture
def activity_logger(db):
    return ActivityLogger(
        ActivityLogRepository(db),
        UserRepository(db),
        password_handler=PasswordHandler(rounds=4),
    )


@pytest.fixture
def user_id(db):
    user = UserRepository(db).create({
        "username": "curator",
        "email": "curator@example.com",
        "password_hash": PasswordHandler(rounds=4).hash_password("s3cret-pass"),
        "company": "Acme Research",
        "designation": "Data Curator",
        "plan": "pro",
    })
    return user["user_id"]


@pytest.fixture
def trial_service(db, activity_logger):
    service = TrialAggregateService(db, activity_logger=activity_logger, max_workers=4)
    yield service
    service.close()


@pytest.fixture
def atomic_trial_service(db, activity_logger):
    service = TrialAggregateService(db, activity_logger=activity_logger, atomic_writes=True, max_workers=4)
    yield service
    service.close()


@pytest.fixture
def section_service(db, activity_logger):
    return TrialSectionService(db, activity_logger=activity_logger)


@pytest.fixture
def make_payload():
    def _make(user_id="missing-user", **overrides):
        payload = {
            "user_id": user_id,
            "overview": {
                "therapeutic_area": "Oncology",
                "trial_identifier": "NCT0001, EU-2024-01",
                "trial_phase": "2",
                "status": "Planned",
                "primary_drugs": ["Drug A", "Drug B"],
                "title": "A study of Drug A in NSCLC",
                "disease_type": "Lung Cancer",
                "trial_tags": "cancer, phase2, oncology",
                "reference_links": ["https://example.org/ref"],
                "sponsor_collaborators": ["Acme Pharma", "Beta Bio"],
                "countries": "United States",
            },
            "outcome": {
                "purpose_of_trial": "Evaluate efficacy",
                "study_design": "Randomized",
                "number_of_arms": "2",
            },
            "criteria": {
                "inclusion_criteria": "Adults with NSCLC",
                "age_from": 18,
                "age_to": 75,
                "sex": "Both",
                "healthy_volunteers": False,
                "target_no_volunteers": 120,
            },
            "timing": {"start_date_estimated": "2024-01-15"},
            "results": {
                "trial_outcome": "Completed",
                "trial_results": "ORR 40%, PFS 8 months",
                "adverse_event_reported": True,
            },
            "sites": {"total": 12, "study_sites": "Site 1, Site 2"},
            "other_sources": {
                "publications": [{"type": "Journal", "title": "Phase 2 results", "url": "https://example.org/pub"}],
                "trial_registries": [{"registry": "ClinicalTrials.gov", "identifier": "NCT0001"}],
            },
            "logs": {"trial_changes_log": "Initial entry", "last_modified_user": "curator"},
            "notes": {"notes": "Follow up in Q3", "attachments": ["protocol.pdf"]},
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture
def client(db, trial_service, section_service):
    from app.config import Settings
    from app.main import create_app
    from app.services.database import get_activity_repository, get_section_service, get_trial_service

    application = create_app(Settings(DB_CONNECT_ON_STARTUP=False))
    application.dependency_overrides[get_trial_service] = lambda: trial_service
    application.dependency_overrides[get_section_service] = lambda: section_service
    application.dependency_overrides[get_activity_repository] = lambda: ActivityLogRepository(db)
    return TestClient(application)
