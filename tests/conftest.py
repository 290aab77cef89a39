"""Shared fixtures and helpers for the sprig test suite."""
from __future__ import annotations

import pytest

import sprig
from sprig.tree import Tree


CALC_GRAMMAR = r"""
?start: sum

?sum: product
    | sum "+" product   -> add
    | sum "-" product   -> sub

?product: atom
    | product "*" atom  -> mul
    | product "/" atom  -> div

?atom: NUMBER           -> number
     | "-" atom         -> neg
     | "(" sum ")"

%import common.NUMBER
%import common.WS_INLINE
%ignore WS_INLINE
"""


def sexpr(node) -> str:
    """Compact rendering of a tree: (tag child ...), tokens as their text, placeholders as _."""
    if node is None:
        return "_"
    if isinstance(node, Tree):
        if not node.children:
            return f"({node.tag})"
        return "(" + node.tag + " " + " ".join(sexpr(c) for c in node.children) + ")"
    return node.value


def evaluate(node) -> float:
    if node.tag == "number":
        return float(node.children[0].value)
    if node.tag == "neg":
        return -evaluate(node.children[0])
    left, right = (evaluate(c) for c in node.children)
    return {
        "add": left + right,
        "sub": left - right,
        "mul": left * right,
        "div": left / right,
    }[node.tag]


@pytest.fixture()
def calc_grammar() -> str:
    return CALC_GRAMMAR


@pytest.fixture()
def calc_lalr() -> sprig.Parser:
    return sprig.compile_grammar(CALC_GRAMMAR)


@pytest.fixture()
def calc_chart() -> sprig.Parser:
    return sprig.compile_grammar(CALC_GRAMMAR, algorithm="chart")


@pytest.fixture(autouse=True)
def _fresh_cache():
    sprig.clear_cache()
    yield
    sprig.clear_cache()
