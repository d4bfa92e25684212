import pytest

import app as webapp
from models import LandlordSettings


def test_failed_migration_exits(monkeypatch, tmp_path):
    def broken_init_db():
        raise RuntimeError("database unreachable")

    monkeypatch.setattr(webapp, "init_db", broken_init_db)
    with pytest.raises(SystemExit) as exc:
        webapp.create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'down.db'}"})
    assert exc.value.code == 1


def test_startup_is_repeatable(tmp_path):
    config = {"TESTING": True, "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'again.db'}"}
    webapp.create_app(config)
    app = webapp.create_app(config)
    with app.app_context():
        assert LandlordSettings.query.count() == 1


def test_postgres_scheme_is_rewritten(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://user:pw@dpg-x.oregon-postgres.render.com/rooms")
    assert webapp.database_url().startswith("postgresql://")
