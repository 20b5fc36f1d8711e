"""Tests for workspace value models."""

import pydantic
import pytest

from clarity.models import (
    ConnectParams,
    DetailKind,
    ObjectDetailTab,
    ObjectRef,
    ResultPane,
    SearchMatch,
    TabularResult,
)


@pytest.mark.unit
def test_object_ref_key_and_name():
    ref = ObjectRef(schema_name="HR", object_type="PACKAGE BODY", object_name="PAYROLL")
    assert ref.key == "ddl:HR:PACKAGE BODY:PAYROLL"
    assert ref.qualified_name == "HR.PAYROLL"


@pytest.mark.unit
def test_search_match_to_ref():
    match = SearchMatch(schema_name="HR", object_type="PROCEDURE", object_name="RAISE_SAL",
                        match_scope="source", line=12, snippet="UPDATE emp")
    assert match.to_ref() == ObjectRef(schema_name="HR", object_type="PROCEDURE",
                                       object_name="RAISE_SAL")


@pytest.mark.unit
def test_connect_params_defaults():
    params = ConnectParams()
    assert params.provider == "oracle"
    assert params.host == "localhost"
    assert params.port == 1521


@pytest.mark.unit
def test_detail_tab_defaults():
    ref = ObjectRef(schema_name="HR", object_type="VIEW", object_name="EMP_V")
    tab = ObjectDetailTab(id=ref.key, target=ref)
    assert tab.active_detail_kind == DetailKind.DDL
    assert tab.focus_token == 0
    assert tab.data_snapshot is None
    assert not tab.loading_data and not tab.loading_metadata


@pytest.mark.unit
class TestTabularResult:
    def test_row_set(self):
        result = TabularResult(columns=["ID", "NAME"], rows=[["1", "Ann"]])
        assert result.is_row_set

    def test_mutation_summary(self):
        result = TabularResult(rows_affected=3, message="Statement executed. 3 row(s) affected.")
        assert not result.is_row_set
        assert result.columns == []

    def test_duplicate_columns_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            TabularResult(columns=["ID", "ID"])

    def test_ragged_rows_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            TabularResult(columns=["ID", "NAME"], rows=[["1"]])

    def test_rows_affected_with_columns_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            TabularResult(columns=["ID"], rows_affected=1)

    def test_serializes(self):
        result = TabularResult(columns=["X"], rows=[["1"]], message="ok")
        assert result.model_dump() == {
            "columns": ["X"], "rows": [["1"]], "rows_affected": None, "message": "ok"}


@pytest.mark.unit
def test_result_pane_filled():
    pane = ResultPane(id="query:1:result:1", title="Result 1")
    assert not pane.is_filled
    pane.error_message = "boom"
    assert pane.is_filled
