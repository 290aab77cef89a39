# sprig/engine.py
"""파서 엔진 공통 인터페이스.

LALR 엔진과 chart 엔진은 Grammar Model, Lexer, TreeBuilder만 공유한다.
엔진 객체는 생성 후 불변이며, parse 호출마다 필요한 가변 상태는 지역 변수와 LexerState에 둔다.
"""

from __future__ import annotations
from typing import Optional

from .builder import TreeBuilder
from .errors import UnknownStartRule
from .grammar.model import Grammar
from .lex import Lexer
from .tree import Tree


class ParserEngine:
    def __init__(self, grammar: Grammar, lexer: Lexer, builder: TreeBuilder):
        self.grammar = grammar
        self.lexer = lexer
        self.builder = builder

    def resolve_start(self, start: Optional[str]) -> str:
        if start is None:
            start = self.grammar.start[0]
        if start not in self.grammar.start:
            raise UnknownStartRule(
                f"Start rule {start!r} was not compiled (available: {', '.join(self.grammar.start)})",
                symbol=start)
        return start

    def parse(self, text: str, start: Optional[str] = None) -> Tree:
        raise NotImplementedError
