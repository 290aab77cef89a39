# sprig/chart/engine.py
"""Earley(chart) 인식기.

입력을 왼쪽에서 오른쪽으로 토큰 단위로 처리하며, 각 위치 i에 대해
"지금까지의 입력과 일치하는 부분 유도(item)" 집합 S[i]를 유지한다.

- predict : 점 뒤가 비단말 B 이면 B의 프로덕션들을 S[i]에 (origin = i) 추가
            B가 nullable 이면 점을 B 뒤로 옮긴 아이템도 함께 추가 (Aycock–Horspool)
- complete: 점이 끝에 닿은 아이템 A(origin=o) → S[o]에서 A를 기다리던 아이템 전진
- scan    : 다음 토큰과 같은 단말을 기다리던 아이템을 S[i+1]로 전진

토큰은 위치마다 한 번씩 요청한다. contextual 모드에서는 S[i]가 기다리는 단말만 허용한다.
완료 기록 completed[(A, o)] = {e, ...} 은 유도 선택(derive.py)이 쓴다.
"""

from __future__ import annotations
import logging
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from ..builder import TreeBuilder
from ..engine import ParserEngine
from ..errors import NoParseFound
from ..grammar.model import Grammar, Production
from ..lex import Lexer, LexerState, Token
from ..tree import Tree
from .derive import Deriver

logger = logging.getLogger(__name__)

Item = Tuple[int, int, int]     # (prod_idx, dot, origin)


def nullable_rules(prods: Tuple[Production, ...]) -> FrozenSet[str]:
    nullable: Set[str] = set()
    changed = True
    while changed:
        changed = False
        for p in prods:
            if p.lhs not in nullable and all(not s.is_term and s.name in nullable for s in p.rhs):
                nullable.add(p.lhs)
                changed = True
    return frozenset(nullable)


class ChartResult:
    """인식 결과: 토큰 열과 완료 기록."""
    __slots__ = ("tokens", "completed")

    def __init__(self, tokens: List[Token], completed: Dict[Tuple[str, int], Set[int]]):
        self.tokens = tokens
        self.completed = completed


class ChartParser(ParserEngine):
    """
    ChartParser
    ===========
    - contextual=True : 위치마다 기대 단말만 허용해 렉서를 호출
    - contextual=False: standard 모드 (모든 단말)
    좌재귀, 순환 규칙, 모호한 문법을 모두 받아들인다.
    """

    def __init__(self, grammar: Grammar, lexer: Lexer, builder: TreeBuilder, contextual: bool = False):
        super().__init__(grammar, lexer, builder)
        self.contextual = contextual
        self.prods = grammar.productions
        self.nullable = nullable_rules(self.prods)
        self.by_lhs: Dict[str, List[int]] = {}
        for idx, p in enumerate(self.prods):
            self.by_lhs.setdefault(p.lhs, []).append(idx)
        logger.debug("chart parser ready: %d productions, %d nullable rules, %s lexer",
                     len(self.prods), len(self.nullable), "contextual" if contextual else "standard")

    # ---- 인식 ----
    def recognize(self, state: LexerState, start: str) -> ChartResult:
        prods = self.prods
        tokens: List[Token] = []
        completed: Dict[Tuple[str, int], Set[int]] = {}
        waiting_sets: List[Dict[str, List[Item]]] = []

        current: List[Item] = [(pi, 0, 0) for pi in self.by_lhs.get(start, [])]
        i = 0
        while True:
            expect = self._process(current, i, completed, waiting_sets)
            tok = self.lexer.next_token(state, expect if self.contextual else None)
            if tok is None:
                break
            nxt: List[Item] = []
            for pi, dot, origin in current:
                rhs = prods[pi].rhs
                if dot < len(rhs) and rhs[dot].is_term and rhs[dot].name == tok.type:
                    nxt.append((pi, dot + 1, origin))
            if not nxt:
                raise NoParseFound(f"Unexpected token {tok.type} {tok.value!r}", expect,
                                   tok.start_pos, tok.line, tok.column, token=tok)
            tokens.append(tok)
            current = nxt
            i += 1

        if i not in completed.get((start, 0), ()):
            raise NoParseFound("Unexpected end of input", expect, len(state.text),
                               state.line, state.column)
        return ChartResult(tokens, completed)

    def _process(self, items: List[Item], i: int, completed: Dict[Tuple[str, int], Set[int]],
                 waiting_sets: List[Dict[str, List[Item]]]) -> FrozenSet[str]:
        """S[i]에 predict/complete를 고정점까지 적용(items를 제자리에서 늘린다). 기대 단말을 돌려준다."""
        prods = self.prods
        seen: Set[Item] = set(items)
        waiting: Dict[str, List[Item]] = {}
        predicted: Set[str] = set()
        expect: Set[str] = set()

        def add(it: Item) -> None:
            if it not in seen:
                seen.add(it)
                items.append(it)

        k = 0
        while k < len(items):
            pi, dot, origin = items[k]
            k += 1
            p = prods[pi]
            if dot < len(p.rhs):
                sym = p.rhs[dot]
                if sym.is_term:
                    expect.add(sym.name)
                    continue
                waiting.setdefault(sym.name, []).append((pi, dot, origin))
                if sym.name not in predicted:
                    predicted.add(sym.name)
                    for pj in self.by_lhs.get(sym.name, []):
                        add((pj, 0, i))
                if sym.name in self.nullable:
                    add((pi, dot + 1, origin))
            else:
                ends = completed.setdefault((p.lhs, origin), set())
                ends.add(i)
                source = waiting if origin == i else waiting_sets[origin]
                for wpi, wdot, worigin in list(source.get(p.lhs, ())):
                    add((wpi, wdot + 1, worigin))
        waiting_sets.append(waiting)
        return frozenset(expect)

    def parse(self, text: str, start: Optional[str] = None) -> Tree:
        start = self.resolve_start(start)
        state = LexerState(text)
        result = self.recognize(state, start)
        deriver = Deriver(self.prods, self.by_lhs, result.tokens, result.completed, self.builder)
        best = deriver.derive(start, 0, len(result.tokens))
        if best is None:
            # 완료 기록은 있는데 순환 없이 고를 수 있는 유도가 없는 경우
            raise NoParseFound("No derivation covers the input", frozenset(), len(text),
                               state.line, state.column)
        return self.builder.finish(best[1], start, state)
