"""Tests for result pane allocation."""

import pytest

from clarity.errors import ValidationError
from clarity.models import QueryTab, TabularResult
from clarity.results import UNKNOWN_ERROR, ResultPaneManager


@pytest.fixture
def tab():
    return QueryTab(id="query:1", title="Query 1")


@pytest.fixture
def manager():
    return ResultPaneManager()


@pytest.mark.unit
class TestPrepare:
    def test_one_pane_per_statement(self, manager, tab):
        manager.prepare(tab, 3)
        assert [pane.id for pane in tab.result_panes] == [
            "query:1:result:1", "query:1:result:2", "query:1:result:3"]
        assert [pane.title for pane in tab.result_panes] == ["Result 1", "Result 2", "Result 3"]
        assert tab.active_result_pane_id == "query:1:result:1"
        assert not any(pane.is_filled for pane in tab.result_panes)

    def test_numbers_continue_across_runs(self, manager, tab):
        manager.prepare(tab, 3)
        manager.prepare(tab, 2)
        assert [pane.title for pane in tab.result_panes] == ["Result 4", "Result 5"]
        assert tab.next_pane_number == 6

    def test_at_least_one_pane(self, manager, tab):
        manager.prepare(tab, 0)
        assert len(tab.result_panes) == 1


@pytest.mark.unit
class TestWrite:
    def test_success(self, manager, tab):
        manager.prepare(tab, 2)
        result = TabularResult(columns=["X"], rows=[["1"]])
        pane = manager.write(tab, 1, result=result)
        assert pane.result == result
        assert pane.error_message == ""
        assert tab.active_result_pane_id == "query:1:result:1"

    def test_error_activates_pane(self, manager, tab):
        manager.prepare(tab, 2)
        pane = manager.write(tab, 1, error="ORA-00942: table or view does not exist")
        assert pane.result is None
        assert pane.is_filled
        assert tab.active_result_pane_id == pane.id

    def test_empty_error_is_still_a_failure(self, manager, tab):
        manager.prepare(tab, 2)
        pane = manager.write(tab, 1, error="")
        assert pane.result is None
        assert pane.error_message == UNKNOWN_ERROR
        assert tab.active_result_pane_id == pane.id

    def test_missing_result_is_a_failure(self, manager, tab):
        manager.prepare(tab, 1)
        pane = manager.write(tab, 0)
        assert pane.error_message == UNKNOWN_ERROR

    def test_out_of_range(self, manager, tab):
        manager.prepare(tab, 1)
        with pytest.raises(ValidationError):
            manager.write(tab, 1, result=TabularResult())


@pytest.mark.unit
class TestActivate:
    def test_activate_current_pane(self, manager, tab):
        manager.prepare(tab, 2)
        assert manager.activate(tab, "query:1:result:2") is True
        assert manager.active_pane(tab).title == "Result 2"

    def test_stale_pane_is_ignored(self, manager, tab):
        manager.prepare(tab, 2)
        manager.prepare(tab, 1)
        assert manager.activate(tab, "query:1:result:2") is False
        assert tab.active_result_pane_id == "query:1:result:3"

    def test_active_pane_none_before_run(self, manager, tab):
        assert manager.active_pane(tab) is None
