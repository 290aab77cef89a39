# sprig/lalr/runtime.py
"""LALR(1) 파서 런타임(스택 머신).

- 시작 규칙마다 `Tables`(ACTION/GOTO)와 `SymbolTable`을 한 번 만들어 둔다.
- 매 단계 현재 상태의 expected 집합을 렉서에 넘겨 토큰을 받는다 (contextual lexing).
- 상태 스택과 나란히 값 스택을 두고, reduce 때마다 TreeBuilder로 노드를 만든다.
- 실패하면 UnexpectedToken / UnexpectedEndOfInput (expected 집합 포함).
"""

from __future__ import annotations
import logging
from typing import Dict, List, Optional

from ..builder import TreeBuilder
from ..engine import ParserEngine
from ..errors import UnexpectedEndOfInput, UnexpectedToken
from ..grammar.model import Grammar
from ..lex import Lexer, LexerState, Token
from ..tree import Tree
from .items import build_lalr_tables
from .table import Tables

logger = logging.getLogger(__name__)


class LALRParser(ParserEngine):
    """
    LALRParser
    ==========
    생성 시 grammar.start 의 각 시작 규칙에 대해 테이블을 만든다.
    충돌이 있으면 여기서 GrammarConflict가 전파된다.
    """

    def __init__(self, grammar: Grammar, lexer: Lexer, builder: TreeBuilder):
        super().__init__(grammar, lexer, builder)
        self.tables: Dict[str, Tables] = {}
        for s in grammar.start:
            self.tables[s] = build_lalr_tables(grammar, s)

    def parse(self, text: str, start: Optional[str] = None) -> Tree:
        """
        LALR(1) 테이블과 contextual 렉서로 입력 문자열을 파싱합니다.

        Parameters
        ----------
        text : str
            파싱할 원문.
        start : str | None
            시작 규칙. None이면 컴파일 시 첫 번째 시작 규칙.

        Returns
        -------
        Tree
            파스 트리. 실패 시 ParseError 하위 예외를 발생시킵니다.
        """
        start = self.resolve_start(start)
        tables = self.tables[start]
        sym = tables.symbols

        state = LexerState(text)
        state_stack: List[int] = [tables.start_state]
        value_stack: List[object] = []

        look: Optional[Token] = self.lexer.next_token(state, tables.expected[tables.start_state])

        while True:
            s = state_stack[-1]
            if look is None:
                a_id = sym.eof_id
            else:
                try:
                    a_id = sym.id_of(look.type)
                except KeyError:
                    raise UnexpectedToken(look, tables.expected[s], state=s) from None
            act = tables.action.get((s, a_id))

            if act is None:
                if look is None:
                    raise UnexpectedEndOfInput(tables.expected[s], len(text), state.line, state.column)
                raise UnexpectedToken(look, tables.expected[s], state=s)

            kind, arg = act

            if kind == 's':  # shift
                state_stack.append(arg)
                value_stack.append(look)
                look = self.lexer.next_token(state, tables.expected[arg])
                continue

            if kind == 'r':  # reduce by production #arg
                n = tables.prod_rhs_len[arg]
                if n:
                    values = value_stack[-n:]
                    del value_stack[-n:]
                    del state_stack[-n:]
                else:
                    values = []
                value_stack.append(self.builder.reduce(tables.prods[arg], values))
                t = state_stack[-1]
                state_stack.append(tables.goto[(t, tables.prod_lhs_ids[arg])])
                continue

            # accept
            return self.builder.finish(value_stack[-1], start, state)
