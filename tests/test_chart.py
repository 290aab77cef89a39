"""Tests for the chart engine (sprig.chart)."""
from __future__ import annotations

import pytest

import sprig
from sprig.chart import nullable_rules
from sprig.compiler import build_grammar
from sprig.errors import NoParseFound
from sprig.lex import Token
from sprig.tree import Tree

from conftest import evaluate, sexpr


def chart(text: str, **options) -> sprig.Parser:
    return sprig.compile_grammar(text, algorithm="chart", **options)


# ---------------------------------------------------------------------------
# Recognition
# ---------------------------------------------------------------------------


class TestRecognition:
    def test_nullable_rules(self) -> None:
        g = build_grammar('start: a b\na: "a"?\nb: B*\nB: "b"\n')
        assert {"start", "a", "b"} <= nullable_rules(g.productions)

    def test_empty_input(self) -> None:
        p = chart('start: a b\na: "a"?\nb: B*\nB: "b"\n')
        assert p.parse("") == Tree("start", (Tree("a"), Tree("b")))

    def test_left_recursion(self) -> None:
        p = chart('start: start "+" N | N\nN: /\\d/\n')
        assert sexpr(p.parse("1+2+3")) == "(start (start (start 1) 2) 3)"

    def test_right_recursion(self) -> None:
        p = chart('start: N "+" start | N\nN: /\\d/\n')
        assert sexpr(p.parse("1+2+3")) == "(start 1 (start 2 (start 3)))"

    def test_unit_cycle(self) -> None:
        p = chart('start: a\na: a | X\nX: "x"\n')
        tree = p.parse("x")
        (a,) = tree.children
        assert a.tag == "a"
        assert isinstance(a.children[0], Token)

    def test_long_repetition(self) -> None:
        p = chart('start: A*\nA: "a"\n')
        tree = p.parse("a" * 5000)
        assert len(tree.children) == 5000
        assert tree.children[-1].start_pos == 4999

    def test_long_separated_list(self) -> None:
        p = chart('start: item ("," item)*\nitem: N\nN: /\\d/\n')
        tree = p.parse(",".join("7" * 3000))
        assert len(tree.children) == 3000
        assert all(c.tag == "item" for c in tree.children)

    @pytest.mark.parametrize("text", ["1 + 2 * 3", "(1 + 2) * 3", "-4 - -4", "8 / 2 / 2"])
    def test_matches_deterministic_engine(self, calc_lalr, calc_chart, text: str) -> None:
        assert calc_chart.parse(text) == calc_lalr.parse(text)
        assert evaluate(calc_chart.parse(text)) == evaluate(calc_lalr.parse(text))


# ---------------------------------------------------------------------------
# Ambiguity
# ---------------------------------------------------------------------------


class TestAmbiguity:
    def test_conflicting_grammar_compiles(self) -> None:
        p = chart('start: a | b\na: "x"\nb: "x"\n')
        assert p.parse("x") == Tree("start", (Tree("a"),))

    def test_priority_wins_over_order(self) -> None:
        p = chart('start: a | b\na: "x"\nb.1: "x"\n')
        assert p.parse("x") == Tree("start", (Tree("b"),))

    def test_rule_priority_counts_once_through_helpers(self) -> None:
        p = chart('start: a | b\na.2: (X X)*\nb: X*\nX: "x"\n')
        assert sexpr(p.parse("xx")) == "(start (a x x))"
        q = chart('start: a | b\na: X X*\nb.1: X*\nX: "x"\n')
        assert q.parse("xxx").children[0].tag == "b"

    def test_earlier_children_take_longest_span(self) -> None:
        p = chart('start: e\ne: e "+" e | N\nN: /\\d/\n')
        assert sexpr(p.parse("1+2+3")) == "(start (e (e (e 1) (e 2)) (e 3)))"

    def test_declaration_order_between_alternatives(self) -> None:
        p = chart('start: pair | triple\npair: X X\ntriple: X X\nX: "x"\n')
        assert p.parse("xx").children[0].tag == "pair"

    @pytest.mark.parametrize("algorithm", ["deterministic", "chart"])
    def test_first_alternative_of_terminal_wins(self, algorithm: str) -> None:
        p = sprig.compile_grammar('A: "a" | "ab"\nB: "b"\nstart: (A | B)+\n', algorithm=algorithm)
        tree = p.parse("ab")
        assert tree.tag == "start"
        assert [(t.type, t.value) for t in tree.children] == [("A", "a"), ("B", "b")]


# ---------------------------------------------------------------------------
# Lexer modes
# ---------------------------------------------------------------------------


CONTEXT = r"""
start: NAME "=" VALUE
NAME: /[a-z]+/
VALUE: /[a-z0-9]+/
%ignore " "
"""


class TestLexerModes:
    def test_standard_lexer_cannot_disambiguate(self) -> None:
        with pytest.raises(NoParseFound):
            chart(CONTEXT).parse("abc = x1")

    def test_contextual_lexer(self) -> None:
        p = chart(CONTEXT, lexer="contextual")
        assert sexpr(p.parse("abc = x1")) == "(start abc x1)"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_unexpected_end(self, calc_chart) -> None:
        with pytest.raises(NoParseFound, match="end of input") as exc:
            calc_chart.parse("1 +")
        assert "NUMBER" in exc.value.expected
        assert exc.value.token is None

    def test_unexpected_token(self, calc_chart) -> None:
        with pytest.raises(NoParseFound) as exc:
            calc_chart.parse("1 2")
        assert exc.value.token.value == "2"
        assert exc.value.column == 3
        assert "PLUS" in exc.value.expected

    def test_is_a_parse_error(self, calc_chart) -> None:
        with pytest.raises(sprig.ParseError):
            calc_chart.parse(")")
