"""Tests for execution preflight classification."""

import pytest

from clarity.preflight import assess_batch, assess_statement, sanitize


@pytest.mark.unit
class TestAssessStatement:
    def test_select_is_safe(self):
        assessment = assess_statement("select * from t")
        assert assessment.should_confirm is False
        assert assessment.reasons == []

    def test_update_needs_confirmation(self):
        assessment = assess_statement("update t set x=1")
        assert assessment.should_confirm is True
        assert assessment.reasons == ["UPDATE"]

    @pytest.mark.parametrize("statement", [
        "SELECT 'DROP TABLE x' FROM dual",
        'SELECT "DELETE" FROM t',
        "SELECT 1 FROM dual -- drop table t",
        "/* delete everything */ SELECT 1 FROM dual",
        "WITH x AS (SELECT 1 FROM dual) SELECT * FROM x",
        "SELECT updated_at, created FROM t",
        "EXPLAIN PLAN FOR SELECT 1 FROM dual",
        "DESC emp",
        "",
    ])
    def test_safe_statements(self, statement):
        assert assess_statement(statement).should_confirm is False

    def test_keyword_anywhere_counts(self):
        assessment = assess_statement("SELECT * FROM t FOR UPDATE")
        assert assessment.reasons == ["UPDATE"]

    def test_reasons_in_order_without_duplicates(self):
        statement = ("MERGE INTO t USING s ON (t.id = s.id) "
                     "WHEN MATCHED THEN UPDATE SET t.x = s.x "
                     "WHEN NOT MATCHED THEN INSERT (x) VALUES (s.x); UPDATE t SET y = 1")
        assert assess_statement(statement).reasons == ["MERGE", "UPDATE", "INSERT"]

    def test_case_insensitive(self):
        assert assess_statement("Drop table t").reasons == ["DROP"]

    def test_unknown_leading_verb_is_unsafe(self):
        assessment = assess_statement("LOCK TABLE t IN EXCLUSIVE MODE")
        assert assessment.should_confirm is True
        assert assessment.reasons == ["LOCK"]

    def test_plsql_block(self):
        assessment = assess_statement("BEGIN dbms_stats.gather_schema_stats('HR'); END;")
        assert assessment.reasons == ["BEGIN"]


@pytest.mark.unit
class TestSanitize:
    def test_masks_literals_identifiers_and_comments(self):
        assert sanitize("SELECT 'a' || \"B\" -- c").strip() == "SELECT '' || \"\""

    def test_comment_marker_inside_literal(self):
        assert sanitize("SELECT '--x' FROM t") == "SELECT '' FROM t"

    def test_escaped_quote_inside_literal(self):
        assert sanitize("SELECT 'it''s drop' FROM t") == "SELECT '' FROM t"


@pytest.mark.unit
class TestAssessBatch:
    def test_union_of_reasons(self):
        assessment = assess_batch(
            ["SELECT 1 FROM dual", "DELETE FROM t", "DROP TABLE x", "DELETE FROM y"])
        assert assessment.should_confirm is True
        assert assessment.reasons == ["DELETE", "DROP"]

    def test_all_safe(self):
        assessment = assess_batch(["SELECT 1 FROM dual", "SELECT 2 FROM dual"])
        assert assessment.should_confirm is False
        assert assessment.reasons == []

    def test_empty_batch(self):
        assert assess_batch([]).should_confirm is False
