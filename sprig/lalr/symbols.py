"""심볼에 정수 ID를 부여해 테이블에서 사용하기 쉽게 합니다."""
from __future__     import annotations
from dataclasses    import dataclass, field
from typing         import Dict, Iterable, List, Optional

from ..grammar.model import Grammar

EOF = "$"


@dataclass
class SymbolTable:
    """
    SymbolTable
    ===========
    단말/비단말 **이름 ↔ 정수 ID 매핑**.
    FIRST/FOLLOW, 테이블 생성, 런타임이 모두 같은 ID를 쓰도록 freeze() 후 사용한다.

    - 단말 ID  : 0 .. T-1, **EOF('$')는 항상 0**
    - 비단말 ID: T .. T+N-1
    - 나머지는 이름 정렬 순서 (디버깅 편의)
    """

    _name_to_id: Dict[str, int] = field(default_factory=dict)
    _id_to_name: List[str] = field(default_factory=list)
    _term_count: int = 0
    _nonterm_count: int = 0
    _frozen: bool = False
    _start: Optional[str] = None

    @classmethod
    def from_grammar(cls, grammar: Grammar, start: str) -> "SymbolTable":
        sym = cls()
        sym.freeze(grammar.terminal_names, grammar.rule_names, start)
        return sym

    def freeze(self, terms: Iterable[str], nonterms: Iterable[str], start: str) -> None:
        if self._frozen:
            return
        term_names = [EOF] + sorted(set(terms) - {EOF})
        nonterm_names = sorted(set(nonterms))

        for nm in term_names + nonterm_names:
            self._name_to_id[nm] = len(self._id_to_name)
            self._id_to_name.append(nm)
        self._term_count = len(term_names)
        self._nonterm_count = len(nonterm_names)
        self._start = start
        self._frozen = True

    # ----- 조회 / 유틸 -----
    def id_of(self, name: str) -> int:
        """심볼 이름을 ID로 변환합니다. 존재하지 않으면 KeyError."""
        return self._name_to_id[name]

    def name_of(self, id_: int) -> str:
        return self._id_to_name[id_]

    def is_term_id(self, id_: int) -> bool:
        return 0 <= id_ < self._term_count

    def is_nonterm_id(self, id_: int) -> bool:
        return self._term_count <= id_ < (self._term_count + self._nonterm_count)

    @property
    def eof_id(self) -> int:
        return 0

    @property
    def term_count(self) -> int:
        return self._term_count

    @property
    def nonterm_count(self) -> int:
        return self._nonterm_count

    @property
    def start(self) -> str:
        return self._start

    @property
    def start_id(self) -> int:
        return self.id_of(self._start)

    def __repr__(self) -> str:
        terms = self._id_to_name[:self._term_count]
        nonterms = self._id_to_name[self._term_count:]
        return f"SymbolTable(terms={terms}, nonterms={nonterms}, start={self._start})"
