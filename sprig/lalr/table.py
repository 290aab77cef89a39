# sprig/lalr/table.py
"""LALR(1) 파서 테이블 컨테이너."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Tuple

from ..grammar.model import Production
from .symbols import SymbolTable


@dataclass
class Tables:
    """
    Tables
    ======
    LALR(1) 파서 테이블과 디버그 정보를 담는 컨테이너. 생성 후에는 읽기 전용으로만 쓴다.

    필드
    ----
    - action: (state:int, term_id:int) -> ('s', next_state) | ('r', prod_idx) | ('acc', 0)
    - goto  : (state:int, nonterm_id:int) -> next_state
    - start_state : 증강문법의 시작 상태 번호
    - n_states    : 전체 상태 수
    - prods       : 프로덕션 목록 (0번은 증강 프로덕션 S' -> start)
    - prod_lhs_ids: 각 프로덕션의 LHS 심볼 ID
    - prod_rhs_len: 각 프로덕션의 RHS 길이
    - expected    : 상태별로 action이 있는 단말 이름 집합 (contextual lexer의 허용 집합)
    - symbols     : 테이블을 만들 때 쓴 심볼 ↔ ID 표 (런타임도 같은 표를 쓴다)
    - state_items : 디버깅용. 상태별 아이템 문자열
    - resolved    : 우선순위로 해소된 충돌 기록 (state, lookahead, 선택된 쪽)
    """
    action: Dict[Tuple[int, int], Tuple[str, int]]
    goto: Dict[Tuple[int, int], int]
    start_state: int
    n_states: int
    prods: List[Production]
    prod_lhs_ids: List[int]
    prod_rhs_len: List[int]
    expected: List[FrozenSet[str]]
    symbols: SymbolTable
    state_items: List[List[str]] = field(default_factory=list)
    resolved: List[Tuple[int, str, str]] = field(default_factory=list)

    def pretty_resolutions(self) -> str:
        """
        우선순위로 해소된 충돌 목록을 사람이 읽기 좋은 문자열로 변환합니다.

        Returns
        -------
        str
            줄바꿈으로 구분된 리포트. 없으면 '(no conflicts)'.
        """
        if not self.resolved:
            return "(no conflicts)"
        return "\n".join(f"state {st}, on {la}: {choice}" for st, la, choice in self.resolved)

    def pretty_state(self, state: int, out: Callable[[str], None]) -> None:
        for line in self.state_items[state]:
            out("  " + line)
