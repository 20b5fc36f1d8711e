"""Tests for the command-line entry point."""

import pytest

import clarity
from clarity.__main__ import main


@pytest.fixture
def sql_file(tmp_path):
    def write(text):
        path = tmp_path / "worksheet.sql"
        path.write_text(text, encoding="utf-8")
        return str(path)
    return write


@pytest.mark.unit
def test_version():
    assert clarity.__version__ == "0.1.0"


@pytest.mark.unit
class TestMain:
    def test_no_args_prints_usage(self, capsys):
        assert main([]) == 0
        assert "Usage: clarity" in capsys.readouterr().out

    def test_help(self, capsys):
        assert main(["--help"]) == 0
        assert "--split FILE" in capsys.readouterr().out

    def test_unknown_option(self, capsys):
        assert main(["--run", "x.sql"]) == 2

    def test_missing_file_argument(self, capsys):
        assert main(["--split"]) == 2

    def test_split(self, capsys, sql_file):
        path = sql_file("SELECT 1 FROM dual;\n-- totals\nSELECT 2 FROM dual;\n")
        assert main(["--split", path]) == 0
        assert capsys.readouterr().out == (
            "-- Statement 1\nSELECT 1 FROM dual\n"
            "-- Statement 2\nSELECT 2 FROM dual\n")

    def test_split_block(self, capsys, sql_file):
        assert main(["--split", sql_file("BEGIN\n  NULL;\nEND;\n/\n")]) == 0
        assert capsys.readouterr().out == "-- Statement 1\nBEGIN\n  NULL;\nEND;\n"

    def test_check_safe(self, capsys, sql_file):
        assert main(["--check", sql_file("SELECT 1 FROM dual")]) == 0
        assert capsys.readouterr().out == "Safe to run\n1 statement(s)\n"

    def test_check_needs_confirmation(self, capsys, sql_file):
        path = sql_file("DELETE FROM emp; DROP TABLE emp")
        assert main(["-v", "--check", path]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Confirmation required: DELETE, DROP")
        assert out.endswith("2 statement(s)\n")

    def test_unreadable_file(self, capsys, tmp_path):
        assert main(["--check", str(tmp_path / "missing.sql")]) == 1
        assert "Cannot read" in capsys.readouterr().err
