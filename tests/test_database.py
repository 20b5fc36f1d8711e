"""Tests for the local settings database."""

import pytest

from clarity.database import Database, default_db_path


@pytest.fixture
def db(tmp_path):
    return Database(tmp_path / "clarity.db")


@pytest.mark.unit
class TestSettings:
    def test_missing_setting_returns_default(self, db):
        assert db.get_setting("row_limit") is None
        assert db.get_setting("row_limit", "1000") == "1000"

    def test_set_and_replace(self, db):
        db.set_setting("row_limit", 250)
        db.set_setting("row_limit", 300)
        assert db.get_setting("row_limit") == "300"

    def test_get_settings(self, db):
        db.set_setting("theme", "dark")
        db.set_setting("row_limit", 10)
        assert db.get_settings() == {"row_limit": "10", "theme": "dark"}


@pytest.mark.unit
class TestSavedTabs:
    def test_round_trip_in_order(self, db):
        db.save_tabs([
            {"title": "Query 1", "source_text": "SELECT 1 FROM dual"},
            {"title": "Query 2", "source_text": "SELECT 2 FROM dual"},
        ], "HR")
        assert db.get_saved_tabs("HR") == [
            {"title": "Query 1", "source_text": "SELECT 1 FROM dual"},
            {"title": "Query 2", "source_text": "SELECT 2 FROM dual"},
        ]

    def test_save_replaces_previous(self, db):
        db.save_tabs([{"title": "Query 1", "source_text": "old"}], "HR")
        db.save_tabs([{"title": "Query 1", "source_text": "new"}], "HR")
        assert [tab["source_text"] for tab in db.get_saved_tabs("HR")] == ["new"]

    def test_schemas_are_separate(self, db):
        db.save_tabs([{"title": "Query 1", "source_text": "hr"}], "HR")
        db.save_tabs([{"title": "Query 1", "source_text": "scott"}], "SCOTT")
        assert db.get_saved_tabs("HR")[0]["source_text"] == "hr"
        assert db.get_saved_tabs("OE") == []

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "clarity.db"
        Database(path).save_tabs([{"title": "Query 1", "source_text": "x"}])
        assert Database(path).get_saved_tabs() == [{"title": "Query 1", "source_text": "x"}]


@pytest.mark.unit
def test_default_path_override(monkeypatch, tmp_path):
    monkeypatch.setenv("CLARITY_DB", str(tmp_path / "other.db"))
    assert default_db_path() == tmp_path / "other.db"
