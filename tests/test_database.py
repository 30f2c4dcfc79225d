"""
Tests for engine configuration and session helpers.
"""

import pytest

from src.database import repository
from src.database.models import Project
from src.database.session import (
    check_db_connection,
    get_database_url,
    get_db_context,
    get_db_info,
    transaction,
)


class TestDatabaseUrl:

    def test_database_url_wins(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://u:pw@db.internal:5432/audits")
        monkeypatch.setenv("POSTGRES_URL", "postgresql://other/db")

        assert get_database_url() == "postgresql://u:pw@db.internal:5432/audits"

    def test_postgres_url_fallback(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL")
        monkeypatch.setenv("POSTGRES_URL", "postgres://u:pw@db/audits")

        assert get_database_url() == "postgresql://u:pw@db/audits"

    def test_sqlite_fallback(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL")
        monkeypatch.delenv("POSTGRES_URL", raising=False)
        monkeypatch.setenv("SQLITE_PATH", "/tmp/audits.db")

        assert get_database_url() == "sqlite:////tmp/audits.db"


class TestSessions:

    def test_connection_and_info(self):
        assert check_db_connection()

        info = get_db_info()
        assert info["connected"]
        assert {"projects", "crawl_sessions", "seo_analyses", "users"} <= set(info["tables"])

    def test_context_commits(self, user):
        with get_db_context() as session:
            repository.create_project(session, user.id, "Committed", "https://committed.example")

        with get_db_context() as session:
            assert session.query(Project).filter(Project.name == "Committed").count() == 1

    def test_context_rolls_back(self, user):
        with pytest.raises(RuntimeError):
            with get_db_context() as session:
                session.add(Project(user_id=user.id, name="Lost", url="https://lost.example/"))
                session.flush()
                raise RuntimeError("boom")

        with get_db_context() as session:
            assert session.query(Project).filter(Project.name == "Lost").count() == 0

    def test_transaction_rolls_back(self, db, user):
        with pytest.raises(ValueError):
            with transaction(db):
                db.add(Project(user_id=user.id, name="Draft", url="https://draft.example/"))
                db.flush()
                raise ValueError("abort")

        assert db.query(Project).filter(Project.name == "Draft").count() == 0
