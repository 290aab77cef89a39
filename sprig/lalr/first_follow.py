from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Sequence, Set, Tuple

from ..grammar.model import Production
from .symbols import EOF


@dataclass
class FFResult:
    """
    FFResult
    ========
    FIRST/FOLLOW/NULLABLE 계산 결과 (모두 이름 기반).

    - nullable: ε를 유도할 수 있는 비단말 집합
    - first   : 심볼 이름 → FIRST 집합 (단말 a 는 {a})
    - follow  : 비단말 이름 → FOLLOW 집합 (시작 기호에는 '$')
    """
    nullable: Set[str]
    first: Dict[str, Set[str]]
    follow: Dict[str, Set[str]]

    def first_of_sequence(self, seq: Sequence[str], terms: Set[str]) -> Tuple[Set[str], bool]:
        """seq의 FIRST 집합과 seq 전체가 nullable인지 여부."""
        out: Set[str] = set()
        for X in seq:
            if X in terms:
                out.add(X)
                return out, False
            out |= self.first.get(X, set())
            if X not in self.nullable:
                return out, False
        return out, True


def compute_nullable_first_follow(prods: Sequence[Production], terms: Set[str],
                                  start: str) -> FFResult:
    """
    compute_nullable_first_follow
    =============================
    1) NULLABLE: A -> ε 이거나 우변이 전부 nullable이면 A도 nullable (고정점)
    2) FIRST   : 우변을 왼쪽부터 훑으며 nullable인 동안 FIRST를 합친다
    3) FOLLOW  : 오른쪽에서 왼쪽으로 trailer를 전파한다
    """
    nonterms = {p.lhs for p in prods}
    rhs_names: List[Tuple[str, List[str]]] = [(p.lhs, [s.name for s in p.rhs]) for p in prods]

    # ---------- 1) NULLABLE 고정점 ----------
    nullable: Set[str] = set()
    changed = True
    while changed:
        changed = False
        for A, alpha in rhs_names:
            if A not in nullable and all(X in nonterms and X in nullable for X in alpha):
                nullable.add(A)
                changed = True

    # ---------- 2) FIRST 고정점 ----------
    first: Dict[str, Set[str]] = {t: {t} for t in terms}
    for A in nonterms:
        first[A] = set()
    ff = FFResult(nullable=nullable, first=first, follow={})

    changed = True
    while changed:
        changed = False
        for A, alpha in rhs_names:
            f_alpha, _ = ff.first_of_sequence(alpha, terms)
            before = len(first[A])
            first[A] |= f_alpha
            if len(first[A]) != before:
                changed = True

    # ---------- 3) FOLLOW 고정점 ----------
    follow: Dict[str, Set[str]] = {A: set() for A in nonterms}
    follow.setdefault(start, set()).add(EOF)

    changed = True
    while changed:
        changed = False
        for A, alpha in rhs_names:
            trailer: Set[str] = set(follow[A])
            for X in reversed(alpha):
                if X in nonterms:
                    before = len(follow[X])
                    follow[X] |= trailer
                    if len(follow[X]) != before:
                        changed = True
                    trailer = set(first[X]) | (trailer if X in nullable else set())
                else:
                    trailer = {X}

    ff.follow = follow
    return ff
