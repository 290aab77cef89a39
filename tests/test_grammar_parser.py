"""Unit tests for sprig.grammar.parser: grammar text to GrammarFile AST."""
from __future__ import annotations

import pytest

from sprig.errors import GrammarSyntaxError
from sprig.grammar.ast import Group, Lit, Maybe, Name, Range, Suffix, TemplateCall
from sprig.grammar.parser import parse_grammar


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


class TestRules:
    def test_alternatives_and_alias(self) -> None:
        g = parse_grammar("start: a b | c -> other\n")
        (rule,) = g.rules
        assert rule.name == "start"
        assert len(rule.expr.alts) == 2
        assert [a.node.ident for a in rule.expr.alts[0].items] == ["a", "b"]
        assert rule.expr.alts[0].alias is None
        assert rule.expr.alts[1].alias == "other"

    def test_modifiers(self) -> None:
        g = parse_grammar("?expr: x\n!kw: \"if\"\n_inner: x\n")
        expr, kw, inner = g.rules
        assert expr.name == "expr" and expr.expand1 and not expr.keep_all_tokens
        assert kw.name == "kw" and kw.keep_all_tokens and not kw.expand1
        assert inner.name == "_inner"

    def test_priority(self) -> None:
        g = parse_grammar("rule.2: x\nNUM.-1: /\\d+/\n")
        assert g.rules[0].priority == 2
        assert g.terminals[0].priority == -1

    def test_continuation_lines(self) -> None:
        g = parse_grammar("start: a\n    | b\n\n    | c\n")
        assert len(g.rules[0].expr.alts) == 3

    def test_newlines_inside_brackets_are_ignored(self) -> None:
        g = parse_grammar("start: (a\n  | b)\n")
        group = g.rules[0].expr.alts[0].items[0].node
        assert isinstance(group, Group)
        assert len(group.expr.alts) == 2

    def test_comments_are_skipped(self) -> None:
        g = parse_grammar("// header\nstart: a // trailing\n")
        assert len(g.rules) == 1
        assert len(g.rules[0].expr.alts[0].items) == 1

    def test_empty_alternative(self) -> None:
        g = parse_grammar("opt: a |\n")
        assert g.rules[0].expr.alts[1].items == []


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class TestItems:
    def test_suffixes(self) -> None:
        g = parse_grammar("start: a? b* c+ d~3 e~2..4\n")
        items = g.rules[0].expr.alts[0].items
        assert [i.suffix for i in items] == [
            Suffix.OPT, Suffix.STAR, Suffix.PLUS, Suffix.REPEAT, Suffix.REPEAT,
        ]
        assert items[3].repeat == (3, 3)
        assert items[4].repeat == (2, 4)

    def test_repeat_with_spaces(self) -> None:
        g = parse_grammar("four_words: word ~ 4\n")
        assert g.rules[0].expr.alts[0].items[0].repeat == (4, 4)

    def test_maybe_and_group(self) -> None:
        g = parse_grammar("start: [a b] (c | d)\n")
        maybe, group = (i.node for i in g.rules[0].expr.alts[0].items)
        assert isinstance(maybe, Maybe)
        assert isinstance(group, Group)

    def test_string_literal_with_flags_and_escapes(self) -> None:
        g = parse_grammar('A: "abc"i\nB: "a\\nb"\n')
        a = g.terminals[0].expr.alts[0].items[0].node
        b = g.terminals[1].expr.alts[0].items[0].node
        assert isinstance(a, Lit) and a.kind == "str" and a.text == "abc" and a.flags == "i"
        assert b.text == "a\nb"

    def test_regex_literal(self) -> None:
        g = parse_grammar("A: /x+\\/y/ms\n")
        lit = g.terminals[0].expr.alts[0].items[0].node
        assert lit.kind == "re"
        assert lit.text == "x+/y"
        assert set(lit.flags) == {"m", "s"}

    def test_character_range(self) -> None:
        g = parse_grammar('DIGIT: "0".."9"\n')
        rng = g.terminals[0].expr.alts[0].items[0].node
        assert isinstance(rng, Range)
        assert (rng.lo, rng.hi) == ("0", "9")

    def test_name_kinds(self) -> None:
        g = parse_grammar("start: rule TERM _TERM _rule\n")
        names = [i.node for i in g.rules[0].expr.alts[0].items]
        assert [n.is_term for n in names] == [False, True, True, False]

    def test_template_declaration_and_call(self) -> None:
        g = parse_grammar("sep{x, s}: x (s x)*\nstart: sep{item, \",\"}\n")
        templ, start = g.rules
        assert templ.params == ["x", "s"]
        assert templ.is_template
        call = start.expr.alts[0].items[0].node
        assert isinstance(call, TemplateCall)
        assert call.name == "sep"
        assert len(call.args) == 2
        assert g.templates == [templ]
        assert g.plain_rules == [start]


# ---------------------------------------------------------------------------
# Directives
# ---------------------------------------------------------------------------


class TestDirectives:
    def test_ignore(self) -> None:
        g = parse_grammar("%ignore WS\n%ignore \" \"\n")
        assert len(g.ignores) == 2
        assert isinstance(g.ignores[0].expr.alts[0].items[0].node, Name)

    def test_import_forms(self) -> None:
        g = parse_grammar(
            "%import common.WS\n"
            "%import common.NUMBER -> NUM\n"
            "%import common (INT, WORD)\n"
        )
        single, aliased, listed = g.imports
        assert single.path == ("common",) and single.names == [("WS", "WS")]
        assert aliased.names == [("NUMBER", "NUM")]
        assert listed.names == [("INT", "INT"), ("WORD", "WORD")]

    def test_import_alias_cannot_change_kind(self) -> None:
        with pytest.raises(GrammarSyntaxError):
            parse_grammar("%import common.NUMBER -> num\n")

    def test_declare(self) -> None:
        g = parse_grammar("%declare INDENT DEDENT\n")
        assert g.declares[0].names == ["INDENT", "DEDENT"]


# ---------------------------------------------------------------------------
# Syntax errors
# ---------------------------------------------------------------------------


class TestSyntaxErrors:
    def test_missing_colon_reports_position(self) -> None:
        with pytest.raises(GrammarSyntaxError) as exc:
            parse_grammar("start: a\nfoo bar\n")
        assert exc.value.line == 2
        assert exc.value.column == 5
        assert "^" in str(exc.value)

    def test_unexpected_character(self) -> None:
        with pytest.raises(GrammarSyntaxError, match="Unexpected character"):
            parse_grammar("start: a $\n")

    def test_unbalanced_group(self) -> None:
        with pytest.raises(GrammarSyntaxError):
            parse_grammar("start: (a\n")

    def test_unknown_directive(self) -> None:
        with pytest.raises(GrammarSyntaxError, match="Unknown directive"):
            parse_grammar("%frobnicate X\n")

    def test_alias_inside_group(self) -> None:
        with pytest.raises(GrammarSyntaxError, match="Aliases"):
            parse_grammar("start: (a -> b)\n")

    def test_empty_string_literal(self) -> None:
        with pytest.raises(GrammarSyntaxError):
            parse_grammar('A: ""\n')

    def test_inverted_repeat_range(self) -> None:
        with pytest.raises(GrammarSyntaxError):
            parse_grammar("start: a~3..1\n")

    def test_trailing_junk_after_directive(self) -> None:
        with pytest.raises(GrammarSyntaxError, match="end of line"):
            parse_grammar("%import common.WS extra\n")
