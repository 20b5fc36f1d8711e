"""Tests for worksheet statement splitting."""

import re

import pytest

from clarity.splitter import leading_keyword, split_statements, statement_at


def _squash(text: str) -> str:
    return re.sub(r"\s+", "", text)


@pytest.mark.unit
class TestSplitStatements:
    def test_two_statements(self):
        assert split_statements("SELECT 1; SELECT 2") == ["SELECT 1", "SELECT 2"]

    def test_semicolon_inside_literal(self):
        assert split_statements("SELECT ';' FROM t") == ["SELECT ';' FROM t"]

    def test_comment_only_fragment_dropped(self):
        assert split_statements("-- a;\nSELECT 1") == ["SELECT 1"]

    def test_doubled_quote_escape(self):
        text = "SELECT 'it''s;' FROM dual; SELECT 2"
        assert split_statements(text) == ["SELECT 'it''s;' FROM dual", "SELECT 2"]

    def test_semicolon_inside_quoted_identifier(self):
        assert split_statements('SELECT "a;b" FROM t') == ['SELECT "a;b" FROM t']

    def test_block_comment_removed(self):
        statements = split_statements("SELECT /* x; y */ 1 FROM dual")
        assert len(statements) == 1
        assert "x" not in statements[0]
        assert statements[0].startswith("SELECT")
        assert statements[0].endswith("1 FROM dual")

    def test_optimizer_hint_kept(self):
        text = "SELECT /*+ FULL(t) */ * FROM t"
        assert split_statements(text) == [text]

    def test_unterminated_literal_swallows_rest(self):
        assert split_statements("SELECT 'abc; SELECT 2") == ["SELECT 'abc; SELECT 2"]

    def test_trailing_separator(self):
        assert split_statements("SELECT 1;\n") == ["SELECT 1"]

    @pytest.mark.parametrize("text", ["", "   ", " ; ; ", "-- only a comment", "/* c */"])
    def test_nothing_to_run(self, text):
        assert split_statements(text) == []

    def test_custom_separator(self):
        assert split_statements("SELECT 1 | SELECT 2", separator="|") == ["SELECT 1", "SELECT 2"]

    def test_multi_character_separator_rejected(self):
        with pytest.raises(ValueError):
            split_statements("SELECT 1", separator="GO")

    @pytest.mark.parametrize("text", [
        "SELECT 1; SELECT 2",
        "SELECT a, b FROM t WHERE x = 'y;z';\nUPDATE t SET a = 1;",
        "  SELECT 1  ;  SELECT 2  ;  SELECT 3  ",
    ])
    def test_statements_rejoin_to_input(self, text):
        statements = split_statements(text)
        assert _squash(";".join(statements)) == _squash(text.strip().rstrip(";"))


@pytest.mark.unit
class TestBlockFallback:
    def test_anonymous_block_kept_whole(self):
        text = "BEGIN\n  NULL;\nEND;\n/"
        assert split_statements(text) == ["BEGIN\n  NULL;\nEND;"]

    def test_declare_block(self):
        text = "DECLARE x NUMBER; BEGIN x := 1; END;"
        assert split_statements(text) == [text]

    def test_mixed_script_becomes_one_statement(self):
        text = "SELECT 1 FROM dual; BEGIN NULL; END;"
        assert split_statements(text) == [text]

    def test_continuation_keyword_triggers_fallback(self):
        text = "CREATE PROCEDURE p IS BEGIN NULL; EXCEPTION WHEN OTHERS THEN NULL; END;"
        assert split_statements(text) == [text]


@pytest.mark.unit
class TestStatementAt:
    TEXT = "SELECT 1;\nSELECT 2;\nSELECT 3"

    def test_first_statement(self):
        assert statement_at(self.TEXT, 0) == "SELECT 1"

    def test_middle_statement(self):
        assert statement_at(self.TEXT, self.TEXT.index("SELECT 2") + 3) == "SELECT 2"

    def test_end_of_text(self):
        assert statement_at(self.TEXT, len(self.TEXT)) == "SELECT 3"

    def test_separator_belongs_to_its_statement(self):
        assert statement_at(self.TEXT, self.TEXT.index(";")) == "SELECT 1"

    def test_single_statement(self):
        assert statement_at("SELECT 1;   ", 11) == "SELECT 1"

    def test_empty_text(self):
        assert statement_at("", 0) == ""

    def test_block_returns_whole_block(self):
        assert statement_at("BEGIN NULL; END;", 3) == "BEGIN NULL; END;"


@pytest.mark.unit
class TestLeadingKeyword:
    def test_upper_cases(self):
        assert leading_keyword("select 1") == "SELECT"

    def test_skips_parentheses(self):
        assert leading_keyword("  (SELECT 1) UNION (SELECT 2)") == "SELECT"

    def test_empty(self):
        assert leading_keyword("") == ""
