"""Tests for EBNF lowering into the Grammar Model (sprig.grammar.transform)."""
from __future__ import annotations

import logging

import pytest

import sprig
from sprig.compiler import build_grammar
from sprig.errors import (
    GrammarError, NameCollision, UndefinedSymbolReference, UnknownStartRule,
)
from sprig.grammar.model import is_helper
from sprig.tree import Tree


def rhs_names(grammar, rule: str):
    return [[s.name for s in p.rhs] for p in grammar.rules_for(rule)]


# ---------------------------------------------------------------------------
# Quantifiers
# ---------------------------------------------------------------------------


class TestQuantifiers:
    def test_optional_becomes_helper(self) -> None:
        g = build_grammar('start: x? y\nx: "x"\ny: "y"\n')
        (start,) = g.rules_for("start")
        opt = start.rhs[0].name
        assert opt.startswith("__opt_")
        assert rhs_names(g, opt) == [["x"], []]

    def test_star_is_left_recursive(self) -> None:
        g = build_grammar('start: x*\nx: "x"\n')
        star = g.rules_for("start")[0].rhs[0].name
        assert star.startswith("__star_")
        assert rhs_names(g, star) == [[star, "x"], []]

    def test_plus_reuses_star(self) -> None:
        g = build_grammar('start: x+\nx: "x"\n')
        plus = g.rules_for("start")[0].rhs[0].name
        assert plus.startswith("__plus_")
        (body,) = rhs_names(g, plus)
        assert body[0] == "x"
        assert body[1].startswith("__star_")

    def test_exact_repeat_is_inlined(self) -> None:
        g = build_grammar('start: x~3\nx: "x"\n')
        assert rhs_names(g, "start") == [["x", "x", "x"]]

    def test_repeat_range(self) -> None:
        g = build_grammar('start: x~1..3\nx: "x"\n')
        rng = g.rules_for("start")[0].rhs[0].name
        assert rng.startswith("__range_")
        assert [len(r) for r in rhs_names(g, rng)] == [1, 2, 3]

    def test_wide_repeat_range_warns(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="sprig.grammar.transform"):
            build_grammar('start: x~1..60\nx: "x"\n')
        assert any("60 alternatives" in r.getMessage() for r in caplog.records)

    @pytest.mark.parametrize("algorithm", ["deterministic", "chart"])
    def test_four_words(self, algorithm: str) -> None:
        p = sprig.compile_grammar(
            "four_words: word ~ 4\nword: WORD\n%import common.WORD\n%ignore \" \"\n",
            start="four_words", algorithm=algorithm)
        tree = p.parse("a b c d")
        assert len(tree.children) == 4
        with pytest.raises(sprig.ParseError):
            p.parse("a b c")
        with pytest.raises(sprig.ParseError):
            p.parse("a b c d e")

    def test_plus_and_explicit_star_accept_the_same_input(self) -> None:
        a = sprig.compile_grammar('start: x+\nx: "x"\n')
        b = sprig.compile_grammar('start: x x*\nx: "x"\n')
        for text in ("x", "xx", "xxxxx"):
            assert a.parse(text) == b.parse(text)
        for p in (a, b):
            with pytest.raises(sprig.ParseError):
                p.parse("")


# ---------------------------------------------------------------------------
# Groups and maybe
# ---------------------------------------------------------------------------


class TestGroups:
    def test_multi_alternative_group(self) -> None:
        g = build_grammar('start: (a | b) c\na: "a"\nb: "b"\nc: "c"\n')
        (start,) = g.rules_for("start")
        group = start.rhs[0].name
        assert group.startswith("__group_")
        assert rhs_names(g, group) == [["a"], ["b"]]

    def test_single_alternative_group_is_inlined(self) -> None:
        g = build_grammar('start: (a b) c\na: "a"\nb: "b"\nc: "c"\n')
        assert rhs_names(g, "start") == [["a", "b", "c"]]

    def test_maybe_placeholder_counts(self) -> None:
        g = build_grammar('start: [a "," b] [a | b]\na: "a"\nb: "b"\n')
        (start,) = g.rules_for("start")
        seq_maybe, alt_maybe = (s.name for s in start.rhs)
        assert [p.placeholders for p in g.rules_for(seq_maybe)] == [0, 2]
        assert [p.placeholders for p in g.rules_for(alt_maybe)] == [0, 0, 1]

    def test_identical_bodies_share_a_helper(self) -> None:
        g = build_grammar('start: x* y\ny: x*\nx: "x"\n')
        assert g.rules_for("start")[0].rhs[0] == g.rules_for("y")[0].rhs[0]
        assert sum(1 for name in g.rule_names if is_helper(name)) == 1

    def test_keep_all_tokens_gets_its_own_helper(self) -> None:
        g = build_grammar('start: "x"* y\n!y: "x"*\n')
        assert g.rules_for("start")[0].rhs[0] != g.rules_for("y")[0].rhs[0]

    def test_helpers_do_not_appear_in_the_tree(self) -> None:
        p = sprig.compile_grammar('start: (a | b)+\na: "a"\nb: "b"\n')
        assert p.parse("aba") == Tree("start", (Tree("a"), Tree("b"), Tree("a")))


# ---------------------------------------------------------------------------
# Anonymous terminals and filtering
# ---------------------------------------------------------------------------


class TestAnonymousTerminals:
    def test_names(self) -> None:
        g = build_grammar('start: "if" "+" "@@" /[0-9]+/\n')
        names = {t.name for t in g.terminals}
        assert {"IF", "PLUS"} <= names
        assert sum(1 for n in names if n.startswith("__ANON_")) == 2
        assert all(t.anonymous for t in g.terminals)

    def test_reuses_single_literal_terminal(self) -> None:
        g = build_grammar('start: "+" NUM\nPLUS_SIGN: "+"\nNUM: /\\d+/\n')
        (start,) = g.rules_for("start")
        assert start.rhs[0].name == "PLUS_SIGN"
        assert "PLUS" not in {t.name for t in g.terminals}

    def test_filtering(self) -> None:
        g = build_grammar('start: "a" _B C\n_B: "b"\nC: "c"\n')
        assert [s.filter_out for s in g.rules_for("start")[0].rhs] == [True, True, False]

    def test_keep_all_tokens_rule_keeps_everything(self) -> None:
        g = build_grammar('!start: "a" _B C\n_B: "b"\nC: "c"\n')
        assert [s.filter_out for s in g.rules_for("start")[0].rhs] == [False, False, False]

    def test_name_clash_falls_back_to_anon(self) -> None:
        g = build_grammar('start: "if" IF\nIF: /if+/\n')
        (start,) = g.rules_for("start")
        assert start.rhs[0].name.startswith("__ANON_")
        assert start.rhs[1].name == "IF"


# ---------------------------------------------------------------------------
# Directives and references
# ---------------------------------------------------------------------------


class TestDirectivesAndReferences:
    def test_declare(self) -> None:
        g = build_grammar("start: INDENT\n%declare INDENT\n")
        assert g.declared == {"INDENT"}
        assert "INDENT" in g.terminal_names
        assert "INDENT" not in {t.name for t in g.terminals}

    def test_declare_rejects_rules(self) -> None:
        with pytest.raises(GrammarError):
            build_grammar("start: A\nA: \"a\"\n%declare foo\n")

    def test_complex_ignore_gets_its_own_terminal(self) -> None:
        g = build_grammar('start: A\nA: "a"\n%ignore " " | "\\t"\n')
        assert g.ignore == {"__IGNORE_0"}

    def test_ignore_literal(self) -> None:
        g = build_grammar('start: A\nA: "a"\n%ignore " "\n')
        assert g.ignore == {"SPACE"}

    def test_ignore_rule_is_rejected(self) -> None:
        with pytest.raises(GrammarError):
            build_grammar('start: A\nA: "a"\n%ignore start\n')

    def test_undefined_rule(self) -> None:
        with pytest.raises(UndefinedSymbolReference) as exc:
            build_grammar("start: foo\n")
        assert exc.value.symbol == "foo"
        assert exc.value.line == 1

    def test_undefined_terminal(self) -> None:
        with pytest.raises(UndefinedSymbolReference):
            build_grammar("start: FOO\n")

    def test_duplicate_rule(self) -> None:
        with pytest.raises(NameCollision):
            build_grammar('start: A\nstart: A\nA: "a"\n')

    def test_duplicate_terminal(self) -> None:
        with pytest.raises(NameCollision):
            build_grammar('start: A\nA: "a"\nA: "b"\n')

    def test_unknown_start(self) -> None:
        with pytest.raises(UnknownStartRule):
            build_grammar('foo: A\nA: "a"\n')

    def test_alias_and_priority_on_productions(self) -> None:
        g = build_grammar('start.3: A -> first | A A\nA: "a"\n')
        first, second = g.rules_for("start")
        assert (first.alias, first.priority, first.order) == ("first", 3, 0)
        assert (second.alias, second.priority, second.order) == (None, 3, 1)

    def test_helpers_inherit_rule_priority(self) -> None:
        g = build_grammar('start: a | b\na.2: X*\nb: X*\nX: "x"\n')
        star_a = g.rules_for("a")[0].rhs[0].name
        star_b = g.rules_for("b")[0].rhs[0].name
        assert star_a != star_b
        assert {p.priority for p in g.rules_for(star_a)} == {2}
        assert {p.priority for p in g.rules_for(star_b)} == {0}
