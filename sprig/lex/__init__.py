# sprig/lex/__init__.py
"""sprig 토크나이저(runtime). Grammar Model의 단말 정의로 동작하는 렉서.

특징
----
- 매 위치에서 **허용된 단말만** 시도한다
    - standard  : 모든 단말
    - contextual: 파서가 넘겨준 허용 집합 + %ignore 단말
- **최장일치**, 길이가 같으면 단말 우선순위 순서(TerminalDef.sort_key)
- 정규식 단말이 이겼는데 그 텍스트가 같은 priority의 문자열 단말과 같으면
  문자열 단말로 타입을 바꾼다 (예: NAME "if" → IF)
- %ignore 단말은 파서에 넘기지 않고 LexerState.ignored 에 기록


API
---
- `Token(type, value, start_pos, end_pos, line, column)`: 토큰 단위 (불변)
- `LexerState(text)`: parse 호출 1회분의 가변 상태 (위치, 행/열, 무시된 토큰)
- `Lexer(grammar)`
    - `next_token(state, admissible=None) -> Optional[Token]`
    - `tokenize(text) -> Iterator[Token]`          # standard 모드
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import AbstractSet, Dict, FrozenSet, Iterator, List, Optional, Tuple
import logging

from ..errors import LexerExhaustionError, NoMatchingTerminal
from ..grammar.model import Grammar
from ..grammar.terminals import PatternRE, PatternStr, TerminalDef

logger = logging.getLogger(__name__)


# --------- Public datatypes ---------

@dataclass(frozen=True)
class Token:
    type: str        # 단말 이름
    value: str       # 원문 lexeme
    start_pos: int   # 0-based, 포함
    end_pos: int     # 0-based, 미포함
    line: int        # 1-based
    column: int      # 1-based

    def __str__(self) -> str:
        return self.value


class LexerState:
    """
    LexerState
    ==========
    parse 호출 1회가 소유하는 렉서 커서. 공유 객체(Lexer)는 건드리지 않는다.
    """
    __slots__ = ("text", "pos", "line", "column", "ignored")

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1
        self.column = 1
        self.ignored: List[Token] = []

    def advance(self, consumed: str) -> None:
        """소비된 텍스트 길이만큼 내부 포인터/행렬을 갱신."""
        nl = consumed.count("\n")
        if nl:
            self.line += nl
            self.column = len(consumed) - consumed.rfind("\n")
        else:
            self.column += len(consumed)
        self.pos += len(consumed)

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.text)


# --------- Core implementation ---------

class Lexer:
    """
    Lexer
    =====
    컴파일된 단말들을 우선순위 순서로 들고 있는 불변 렉서.
    여러 parse 호출이 동시에 공유해도 된다 (가변 상태는 LexerState 쪽).
    """

    def __init__(self, grammar: Grammar):
        self.terminals: Tuple[TerminalDef, ...] = tuple(grammar.terminals)
        self.ignore: FrozenSet[str] = frozenset(grammar.ignore)
        self.names: FrozenSet[str] = frozenset(t.name for t in self.terminals)
        self._rx = {t.name: t.compile() for t in self.terminals}
        self._unless = self._build_unless()

    def _build_unless(self) -> Dict[str, Dict[str, str]]:
        """정규식 단말 이름 → {문자열 값: 문자열 단말 이름}"""
        out: Dict[str, Dict[str, str]] = {}
        strs = [t for t in self.terminals if isinstance(t.pattern, PatternStr)]
        for t in self.terminals:
            if not isinstance(t.pattern, PatternRE):
                continue
            rx = self._rx[t.name]
            for s in strs:
                if s.priority != t.priority or not s.pattern.flags <= t.pattern.flags:
                    continue
                m = rx.fullmatch(s.pattern.value)
                if m is not None:
                    out.setdefault(t.name, {}).setdefault(s.pattern.value, s.name)
        if out:
            logger.debug("keyword retyping: %s",
                         {k: sorted(v.values()) for k, v in out.items()})
        return out

    # ---- 매칭 ----
    def match_at(self, text: str, pos: int,
                 allowed: Optional[AbstractSet[str]] = None) -> Optional[Tuple[TerminalDef, str]]:
        """pos에서 가장 긴 매치. 길이가 같으면 self.terminals 순서가 앞선 쪽."""
        best: Optional[TerminalDef] = None
        best_text = ""
        best_len = -1
        for t in self.terminals:
            if allowed is not None and t.name not in allowed:
                continue
            m = self._rx[t.name].match(text, pos)
            if m is None:
                continue
            n = m.end() - pos
            if n > best_len:
                best, best_text, best_len = t, m.group(0), n
        if best is None:
            return None
        return best, best_text

    def _retype(self, t: TerminalDef, value: str, allowed: Optional[AbstractSet[str]]) -> str:
        alt = self._unless.get(t.name, {}).get(value)
        if alt is not None and (allowed is None or alt in allowed):
            return alt
        return t.name

    def next_token(self, state: LexerState,
                   admissible: Optional[AbstractSet[str]] = None) -> Optional[Token]:
        """
        다음 토큰 1개를 돌려준다. 입력 끝이면 None.

        Parameters
        ----------
        state : LexerState
            이번 parse 호출의 커서.
        admissible : AbstractSet[str] | None
            파서가 현재 받을 수 있는 단말 이름들(contextual 모드).
            None이면 standard 모드(모든 단말).
        """
        allowed = None if admissible is None else (frozenset(admissible) | self.ignore)
        while not state.at_end:
            text, pos = state.text, state.pos
            hit = self.match_at(text, pos, allowed)
            if hit is None and allowed is not None:
                # 허용 집합 밖의 단말이라도 매치되면 돌려줘서 파서가 UnexpectedToken을 내게 한다
                hit = self.match_at(text, pos)
            if hit is None:
                raise NoMatchingTerminal(text[pos], pos, state.line, state.column,
                                         allowed if allowed is not None else self.names)
            term, value = hit
            if not value:
                raise LexerExhaustionError(term.name, pos, state.line, state.column)

            tok = Token(self._retype(term, value, allowed), value, pos, pos + len(value),
                        state.line, state.column)
            state.advance(value)
            if tok.type in self.ignore:
                state.ignored.append(tok)
                continue
            return tok
        return None

    def tokenize(self, text: str, state: Optional[LexerState] = None) -> Iterator[Token]:
        """standard 모드로 끝까지 토크나이즈."""
        state = state or LexerState(text)
        while True:
            tok = self.next_token(state)
            if tok is None:
                return
            yield tok
