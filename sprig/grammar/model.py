# sprig/grammar/model.py
"""Grammar Model: 완전히 해석된 불변 문법.

전개(desugar)가 끝난 BNF 프로덕션 목록과 컴파일된 단말 정의를 묶는다.
파서 엔진(LALR / chart)과 렉서, 트리 빌더가 모두 이 객체만 본다.
"""

from __future__     import annotations
from dataclasses    import dataclass, field
from typing         import Dict, FrozenSet, Iterator, List, Optional, Tuple

from .terminals     import TerminalDef

# 전개 과정에서 합성된 보조 규칙 이름의 접두어
HELPER_PREFIX = "__"


@dataclass(frozen=True)
class Symbol:
    """
    프로덕션 우변의 심볼 1개.
    - filter_out: 트리에 넣지 않을 토큰(익명 문자열, _NAME 단말)이면 True
    """
    name: str
    is_term: bool
    filter_out: bool = False

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class RuleOptions:
    keep_all_tokens: bool = False   # !rule
    expand1: bool = False           # ?rule


@dataclass(frozen=True)
class Production:
    """
    BNF 프로덕션 1개 (= 규칙의 대안 하나).
    - rhs         : ε는 빈 튜플
    - priority    : `rule.N`의 N (기본 0)
    - order       : 같은 lhs 안에서의 선언 순서
    - placeholders: [item] 보조 규칙의 빈 대안이 남길 부재 표시(None) 개수
    """
    lhs: str
    rhs: Tuple[Symbol, ...]
    alias: Optional[str] = None
    priority: int = 0
    order: int = 0
    options: RuleOptions = RuleOptions()
    placeholders: int = 0

    def __str__(self) -> str:
        body = " ".join(s.name for s in self.rhs) or "<empty>"
        tail = f" -> {self.alias}" if self.alias else ""
        return f"{self.lhs}: {body}{tail}"


def is_helper(name: str) -> bool:
    return name.startswith(HELPER_PREFIX)


def is_inlined_rule(name: str) -> bool:
    """트리에 노드를 만들지 않고 부모에 펼쳐지는 규칙(보조 규칙, _rule)"""
    return name.startswith("_")


@dataclass(frozen=True)
class Grammar:
    """
    Grammar
    =======
    - productions: 모든 프로덕션(사용자 규칙 → 보조 규칙 순)
    - terminals  : 렉서에 올라가는 단말 정의
    - ignore     : %ignore 단말 이름
    - declared   : %declare 로 이름만 선언된 단말(패턴 없음)
    - start      : 시작 규칙 이름들
    """
    productions: Tuple[Production, ...]
    terminals: Tuple[TerminalDef, ...]
    ignore: FrozenSet[str] = frozenset()
    declared: FrozenSet[str] = frozenset()
    start: Tuple[str, ...] = ("start",)
    _by_lhs: Dict[str, Tuple[Production, ...]] = field(default=None, repr=False, compare=False)
    _terms: Dict[str, TerminalDef] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        by_lhs: Dict[str, List[Production]] = {}
        for p in self.productions:
            by_lhs.setdefault(p.lhs, []).append(p)
        object.__setattr__(self, "_by_lhs", {k: tuple(v) for k, v in by_lhs.items()})
        object.__setattr__(self, "_terms", {t.name: t for t in self.terminals})

    # ---- 조회 ----
    @property
    def rule_names(self) -> List[str]:
        return list(self._by_lhs)

    @property
    def terminal_names(self) -> FrozenSet[str]:
        return frozenset(self._terms) | self.declared

    def rules_for(self, name: str) -> Tuple[Production, ...]:
        return self._by_lhs.get(name, ())

    def has_rule(self, name: str) -> bool:
        return name in self._by_lhs

    def terminal(self, name: str) -> TerminalDef:
        return self._terms[name]

    def iter_user_rules(self) -> Iterator[str]:
        for name in self._by_lhs:
            if not is_helper(name):
                yield name

    def __len__(self) -> int:
        return len(self.productions)
