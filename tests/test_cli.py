"""Tests for the sprigc command line tool."""
from __future__ import annotations

import pytest

from sprig.sprigc import main

from conftest import CALC_GRAMMAR


@pytest.fixture()
def calc_file(tmp_path):
    path = tmp_path / "calc.g"
    path.write_text(CALC_GRAMMAR, encoding="utf-8")
    return str(path)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


class TestCheck:
    def test_ok(self, calc_file, capsys) -> None:
        assert main(["check", calc_file]) == 0
        out = capsys.readouterr().out
        assert out.startswith("[CHECK OK] algorithm=deterministic start=start")
        assert "states=" in out

    def test_chart_has_no_states(self, calc_file, capsys) -> None:
        assert main(["check", calc_file, "--algorithm", "chart"]) == 0
        out = capsys.readouterr().out
        assert "algorithm=chart" in out
        assert "states=" not in out

    def test_grammar_error(self, tmp_path, capsys) -> None:
        bad = tmp_path / "bad.g"
        bad.write_text("start: undefined_rule\n", encoding="utf-8")
        assert main(["check", str(bad)]) == 2
        assert "[GRAMMAR ERROR]" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys) -> None:
        assert main(["check", str(tmp_path / "nope.g")]) == 2
        assert "[ERROR]" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# lex / parse
# ---------------------------------------------------------------------------


class TestLexAndParse:
    def test_lex(self, calc_file, capsys) -> None:
        assert main(["lex", calc_file, "--text", "1 + 2"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("000: NUMBER")
        assert "@1:5" in lines[2]

    def test_parse(self, calc_file, capsys) -> None:
        assert main(["parse", calc_file, "--text", "1 + 2"]) == 0
        out = capsys.readouterr().out
        assert out.splitlines()[0] == "add"
        assert "NUMBER '2'" in out

    def test_parse_from_input_file(self, calc_file, tmp_path, capsys) -> None:
        src = tmp_path / "input.txt"
        src.write_text("2 * 3", encoding="utf-8")
        assert main(["parse", calc_file, "--input", str(src), "--algorithm", "chart"]) == 0
        assert capsys.readouterr().out.startswith("mul")

    def test_parse_error(self, calc_file, capsys) -> None:
        assert main(["parse", calc_file, "--text", "1 +"]) == 2
        err = capsys.readouterr().err
        assert "[PARSE ERROR]" in err
        assert "UnexpectedEndOfInput" in err

    def test_input_is_required(self, calc_file) -> None:
        with pytest.raises(SystemExit):
            main(["parse", calc_file])
