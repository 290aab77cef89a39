"""Tests for options, the compile entry points and the parser cache (sprig.config, sprig.compiler)."""
from __future__ import annotations

import logging

import pytest

import sprig
from sprig.chart import ChartParser
from sprig.config import ParserConfig
from sprig.errors import ConfigurationError, GrammarError
from sprig.lalr import LALRParser

from conftest import CALC_GRAMMAR, evaluate, sexpr


SIMPLE = 'start: A B\nA: "a"\nB: "b"\n%ignore " "\n'


# ---------------------------------------------------------------------------
# ParserConfig
# ---------------------------------------------------------------------------


class TestParserConfig:
    def test_defaults(self) -> None:
        cfg = ParserConfig()
        assert cfg.algorithm == "deterministic"
        assert cfg.lexer_mode == "contextual"
        assert cfg.starts == ("start",)
        assert ParserConfig(algorithm="chart").lexer_mode == "standard"

    @pytest.mark.parametrize(
        "options, message",
        [
            ({"algorithm": "packrat"}, "Unknown algorithm"),
            ({"lexer": "dynamic"}, "Unknown lexer"),
            ({"lexer": "standard"}, "requires the contextual lexer"),
            ({"start": []}, "Invalid start"),
            ({"start": ["a", ""]}, "Invalid start"),
            ({"import_resolver": "common"}, "callable"),
        ],
    )
    def test_rejects_bad_options(self, options, message: str) -> None:
        with pytest.raises(ConfigurationError, match=message):
            ParserConfig(**options)

    def test_configuration_error_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            ParserConfig(algorithm="packrat")

    def test_start_normalization(self) -> None:
        assert ParserConfig(start=["expr"]).start == "expr"
        assert ParserConfig(start=("a", "b")).starts == ("a", "b")

    def test_from_dict_rejects_unknown_keys(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown option"):
            ParserConfig.from_dict({"algorithm": "chart", "ambiguity": "explicit"})

    def test_with_options(self) -> None:
        cfg = ParserConfig(algorithm="chart").with_options(lexer="contextual")
        assert (cfg.algorithm, cfg.lexer_mode) == ("chart", "contextual")

    def test_cache_key_follows_effective_lexer(self) -> None:
        assert ParserConfig().cache_key() == ParserConfig(lexer="contextual").cache_key()
        assert ParserConfig().cache_key() != ParserConfig(keep_all_tokens=True).cache_key()


# ---------------------------------------------------------------------------
# compile_grammar
# ---------------------------------------------------------------------------


class TestCompileGrammar:
    def test_engine_selection(self) -> None:
        assert isinstance(sprig.compile_grammar(SIMPLE).engine, LALRParser)
        assert isinstance(sprig.compile_grammar(SIMPLE, algorithm="chart").engine, ChartParser)

    def test_unknown_option(self) -> None:
        with pytest.raises(ConfigurationError):
            sprig.compile_grammar(SIMPLE, lexer_callbacks={})

    def test_config_object_with_overrides(self) -> None:
        cfg = ParserConfig(algorithm="chart")
        p = sprig.compile_grammar(SIMPLE, cfg, keep_all_tokens=True)
        assert p.config.algorithm == "chart"
        assert p.config.keep_all_tokens

    def test_grammar_errors_propagate(self) -> None:
        with pytest.raises(GrammarError):
            sprig.compile_grammar("start: missing\n")

    def test_parse_function(self, calc_lalr) -> None:
        assert evaluate(sprig.parse(calc_lalr, "2 * 3")) == 6

    def test_lex(self) -> None:
        p = sprig.compile_grammar(SIMPLE)
        assert [t.type for t in p.lex("a b")] == ["A", "B"]

    def test_repr(self) -> None:
        text = repr(sprig.compile_grammar(SIMPLE, algorithm="chart"))
        assert "algorithm='chart'" in text
        assert "lexer='standard'" in text

    def test_grammar_property(self) -> None:
        p = sprig.compile_grammar(SIMPLE)
        assert p.grammar.start == ("start",)
        assert {t.name for t in p.grammar.terminals} >= {"A", "B"}

    def test_build_grammar(self) -> None:
        g = sprig.build_grammar(CALC_GRAMMAR)
        assert g.has_rule("sum")
        assert "NUMBER" in g.terminal_names

    def test_debug_logging(self, caplog) -> None:
        with caplog.at_level(logging.DEBUG, logger="sprig"):
            sprig.compile_grammar(SIMPLE, debug=True)
        assert any("LALR tables" in r.getMessage() for r in caplog.records)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class TestCache:
    def test_cached_parser_is_shared(self) -> None:
        a = sprig.compile_grammar(SIMPLE, cache=True)
        b = sprig.compile_grammar(SIMPLE, cache=True)
        assert a is b

    def test_without_cache(self) -> None:
        a = sprig.compile_grammar(SIMPLE)
        b = sprig.compile_grammar(SIMPLE)
        assert a is not b

    def test_different_options_are_different_entries(self) -> None:
        a = sprig.compile_grammar(SIMPLE, cache=True)
        b = sprig.compile_grammar(SIMPLE, cache=True, algorithm="chart")
        assert a is not b

    def test_clear_cache(self) -> None:
        a = sprig.compile_grammar(SIMPLE, cache=True)
        sprig.clear_cache()
        assert sprig.compile_grammar(SIMPLE, cache=True) is not a


# ---------------------------------------------------------------------------
# Repeatability
# ---------------------------------------------------------------------------


SETTINGS = r"""
start: pair ("," pair)*
pair: KEY "=" value
?value: NUMBER
      | "[" [value ("," value)*] "]"   -> list
KEY: /[a-z]+/
NUMBER: /[0-9]+/
%ignore " "
"""


class TestRepeatability:
    @pytest.mark.parametrize("algorithm", ["deterministic", "chart"])
    def test_recompiling_gives_an_equivalent_parser(self, algorithm: str) -> None:
        first = sprig.compile_grammar(SETTINGS, algorithm=algorithm)
        second = sprig.compile_grammar(SETTINGS, algorithm=algorithm)
        assert first is not second
        assert first.grammar == second.grammar
        for text in ("a = 1", "a = 1, b = [2, [3]], c = []"):
            assert first.parse(text) == second.parse(text)

    @pytest.mark.parametrize("algorithm", ["deterministic", "chart"])
    def test_rejection_is_repeatable(self, algorithm: str) -> None:
        for _ in range(2):
            p = sprig.compile_grammar(SETTINGS, algorithm=algorithm)
            with pytest.raises(sprig.ParseError):
                p.parse("a = 1,")
            with pytest.raises(sprig.ParseError):
                p.parse("a = [1")

    def test_engines_agree(self) -> None:
        lalr = sprig.compile_grammar(SETTINGS)
        chart = sprig.compile_grammar(SETTINGS, algorithm="chart")
        text = "x = [1, 2], y = 3"
        assert lalr.parse(text) == chart.parse(text)
        assert sexpr(lalr.parse(text)) == "(start (pair x (list 1 2)) (pair y 3))"
