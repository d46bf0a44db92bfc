from scripts.init_database import main, run_init
from trialbyte.database.config import DatabaseConfig
from trialbyte.database.connection import DatabaseManager
from trialbyte.database.repositories import UserRepository


def _fresh_db(tmp_path):
    return DatabaseManager(DatabaseConfig(url=f"sqlite:///{tmp_path / 'init.db'}"))


def test_run_init_creates_every_table(tmp_path):
    db = _fresh_db(tmp_path)

    tables = run_init(db, create_admin=False)

    assert "therapeutic_trial_overview" in tables
    assert "therapeutic_other_sources" in tables
    assert "user_activity" in tables
    assert "users" in tables
    assert UserRepository(db).find_by_username("admin") is None
    db.close()


def test_main_creates_the_system_admin(tmp_path):
    assert main([], db=_fresh_db(tmp_path)) == 0

    db = _fresh_db(tmp_path)
    admin = UserRepository(db).find_by_username("admin")
    assert admin["email"] == "admin@system.local"
    db.close()


def test_drop_is_aborted_without_confirmation(tmp_path, monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt: "no")
    assert main(["--drop", "--no-admin"], db=_fresh_db(tmp_path)) == 1


def test_drop_with_yes_recreates_tables(tmp_path):
    assert main(["--no-admin"], db=_fresh_db(tmp_path)) == 0
    assert main(["--drop", "--yes", "--no-admin"], db=_fresh_db(tmp_path)) == 0
