# sprig/lalr/items.py
"""LALR(1) 테이블 작성 + 충돌을 프로덕션 priority로 해소.

Grammar Model을 입력으로 받아
- canonical LR(1) 아이템/클로저/고토
- same-core 병합으로 LALR(1) 상태 구성
- ACTION/GOTO 테이블 산출
- 같은 (state, lookahead)에 둘 이상의 동작이 있으면 priority로 해소,
  priority가 같으면 GrammarConflict
를 수행한다.

priority
--------
- reduce: 해당 프로덕션의 priority
- shift : 그 상태에서 lookahead를 shift하는 아이템들의 프로덕션 priority 최댓값
- accept: 0

주의:
- 증강 시작기호 S'는 심볼테이블에 존재하지 않으므로, ID 변환 시
  원래 시작기호의 ID로 **대체 매핑**한다(accept 판단에는 영향 없음).
"""

from __future__ import annotations
import logging
from typing import Dict, FrozenSet, List, Set, Tuple

from ..errors import GrammarConflict
from ..grammar.model import Grammar, Production, Symbol
from .first_follow import FFResult, compute_nullable_first_follow
from .symbols import EOF, SymbolTable
from .table import Tables

logger = logging.getLogger(__name__)

LR1State = Dict[Tuple[int, int], Set[str]]   # (prod_idx, dot) -> lookahead set


# ---------- LR(1) 아이템 ----------

def _state_repr_lr1(items: LR1State) -> Tuple[Tuple[int, int, Tuple[str, ...]], ...]:
    """상태(아이템 맵)를 해시 가능 튜플로 직렬화 (canonical 상태 비교용)."""
    return tuple(sorted((pi, d, tuple(sorted(la))) for (pi, d), la in items.items()))


def _kernel_core_key_lr1(items: LR1State) -> Tuple[Tuple[int, int], ...]:
    """same-core 병합용 커널 코어 키(lookahead 제외). 커널: dot>0 또는 증강 시작 아이템."""
    return tuple(sorted(k for k in items if k[1] != 0 or k[0] == 0))


class _LR1Builder:
    def __init__(self, prods: List[Production], terms: Set[str], ff: FFResult):
        self.prods = prods
        self.terms = terms
        self.ff = ff
        self.lhs_to_prods: Dict[str, List[int]] = {}
        for idx, p in enumerate(prods):
            self.lhs_to_prods.setdefault(p.lhs, []).append(idx)

    def closure(self, state: LR1State) -> None:
        """in-place 고정점: LR(1) closure."""
        changed = True
        while changed:
            changed = False
            for (pi, d), look in list(state.items()):
                rhs = self.prods[pi].rhs
                if d >= len(rhs) or rhs[d].is_term:
                    continue
                beta = [s.name for s in rhs[d + 1:]]
                la, beta_nullable = self.ff.first_of_sequence(beta, self.terms)
                if beta_nullable:
                    la = la | look
                for pj in self.lhs_to_prods.get(rhs[d].name, []):
                    s = state.setdefault((pj, 0), set())
                    old_len = len(s)
                    s |= la
                    if len(s) != old_len:
                        changed = True

    def goto(self, state: LR1State, X: str) -> LR1State:
        """점 뒤가 X인 아이템 전진 + closure."""
        nxt: LR1State = {}
        for (pi, d), look in state.items():
            rhs = self.prods[pi].rhs
            if d < len(rhs) and rhs[d].name == X:
                nxt.setdefault((pi, d + 1), set()).update(look)
        if nxt:
            self.closure(nxt)
        return nxt

    def next_symbols(self, state: LR1State) -> Set[str]:
        out: Set[str] = set()
        for (pi, d) in state:
            rhs = self.prods[pi].rhs
            if d < len(rhs):
                out.add(rhs[d].name)
        return out


# ---------- 충돌 해소 ----------

def _decide(state: int, la: str, cands: List[Tuple[str, int, int, List[str]]]) -> Tuple[str, int]:
    """
    cands: (kind, arg, priority, 관련 프로덕션 문자열) 목록.
    priority가 가장 높은 후보가 유일하면 그것을 고르고, 아니면 GrammarConflict.
    """
    if len(cands) == 1:
        kind, arg, _, _ = cands[0]
        return kind, arg
    ranked = sorted(cands, key=lambda c: -c[2])
    top, second = ranked[0], ranked[1]
    if top[2] == second[2]:
        raise GrammarConflict(state, la, (top[0], second[0]), top[3] + second[3])
    logger.debug("state %d, on %s: %s/%s conflict resolved by priority (%d > %d) -> %s",
                 state, la, top[0], second[0], top[2], second[2], top[0])
    return top[0], top[1]


_ACTION_CODE = {"shift": "s", "reduce": "r", "accept": "acc"}


def build_lalr_tables(grammar: Grammar, start: str) -> Tables:
    """
    build_lalr_tables
    =================
    Canonical LR(1)을 만든 뒤, same kernel(core)을 **병합**하여 LALR(1) 테이블을 생성합니다.

    절차
    ----
    1) 증강문법 S' -> start, 초기 아이템 [S'->·start, {$}] closure
    2) canonical LR(1) DFA 생성 (상태 동일성 = 아이템+lookahead 동일)
    3) same-core 병합 후 커널에서 closure를 다시 수행
    4) 합쳐진 상태들로 ACTION/GOTO 작성, 충돌은 priority로 해소
    """
    aug_start = f"$root_{start}"
    prods: List[Production] = [Production(aug_start, (Symbol(start, False),))] + list(grammar.productions)
    terms = set(grammar.terminal_names) | {EOF}
    sym = SymbolTable.from_grammar(grammar, start)

    ff = compute_nullable_first_follow(prods, terms, aug_start)
    b = _LR1Builder(prods, terms, ff)

    # --- 1) 초기 상태 ---
    I0: LR1State = {(0, 0): {EOF}}
    b.closure(I0)

    states: List[LR1State] = []
    state_index: Dict[tuple, int] = {}

    def add_state(st: LR1State) -> int:
        rep = _state_repr_lr1(st)
        if rep in state_index:
            return state_index[rep]
        states.append(st)
        state_index[rep] = len(states) - 1
        return len(states) - 1

    start_state = add_state(I0)

    # --- 2) canonical LR(1) DFA ---
    worklist: List[int] = [start_state]
    transitions: Dict[Tuple[int, str], int] = {}
    while worklist:
        s = worklist.pop()
        I = states[s]
        for X in sorted(b.next_symbols(I)):
            J = b.goto(I, X)
            if not J:
                continue
            n_before = len(states)
            j_idx = add_state(J)
            transitions[(s, X)] = j_idx
            if len(states) > n_before:
                worklist.append(j_idx)

    # --- 3) same-core(LALR) 병합 ---
    groups: Dict[Tuple[Tuple[int, int], ...], List[int]] = {}
    for i, st in enumerate(states):
        groups.setdefault(_kernel_core_key_lr1(st), []).append(i)

    merged_states: List[LR1State] = []
    old_to_new: Dict[int, int] = {}
    for core, members in groups.items():
        kernel_map: LR1State = {k: set() for k in core}
        for idx in members:
            for k in core:
                kernel_map[k].update(states[idx].get(k, set()))
            old_to_new[idx] = len(merged_states)
        b.closure(kernel_map)
        merged_states.append(kernel_map)

    merged_trans: Dict[Tuple[int, str], int] = {}
    for (i, X), j in transitions.items():
        merged_trans[(old_to_new[i], X)] = old_to_new[j]
    m_start_state = old_to_new[start_state]

    # --- 4) ACTION/GOTO 생성 ---
    def sid(name: str) -> int:
        return sym.start_id if name == aug_start else sym.id_of(name)

    action: Dict[Tuple[int, int], Tuple[str, int]] = {}
    goto: Dict[Tuple[int, int], int] = {}
    expected: List[FrozenSet[str]] = []
    resolved: List[Tuple[int, str, str]] = []

    for s, st in enumerate(merged_states):
        cands: Dict[str, List[Tuple[str, int, int, List[str]]]] = {}

        # shift 후보: 해당 단말을 점 뒤에 둔 아이템들의 priority 최댓값
        shifters: Dict[str, List[Production]] = {}
        for (pi, d) in st:
            rhs = prods[pi].rhs
            if d < len(rhs) and rhs[d].is_term:
                shifters.setdefault(rhs[d].name, []).append(prods[pi])
        for a, ps in shifters.items():
            t = merged_trans[(s, a)]
            cands.setdefault(a, []).append(
                ("shift", t, max(p.priority for p in ps), sorted({str(p) for p in ps})))

        # reduce / accept
        for (pi, d), la_set in sorted(st.items()):
            p = prods[pi]
            if d != len(p.rhs):
                continue
            if pi == 0:
                if EOF in la_set:
                    cands.setdefault(EOF, []).append(("accept", 0, 0, [f"{start} (accept)"]))
                continue
            for a in la_set:
                cands.setdefault(a, []).append(("reduce", pi, p.priority, [str(p)]))

        for a in sorted(cands):
            kind, arg = _decide(s, a, cands[a])
            if len(cands[a]) > 1:
                resolved.append((s, a, kind))
            action[(s, sym.id_of(a))] = (_ACTION_CODE[kind], arg)
        expected.append(frozenset(a for a in cands if a != EOF))

    for (s, X), t in merged_trans.items():
        xid = sid(X)
        if not sym.is_term_id(xid):
            goto[(s, xid)] = t

    # --- 5) 디버그 문자열 (lookahead 포함) ---
    def fmt_item_lr1(pi: int, d: int, las: Set[str]) -> str:
        p = prods[pi]
        rhs = [x.name for x in p.rhs]
        rhs.insert(d, "·")
        las_s = ", ".join(sorted(las)) if las else "∅"
        return f"[{p.lhs} -> {' '.join(rhs)} , {{{las_s}}}]"

    state_items = [[fmt_item_lr1(pi, d, st[(pi, d)]) for (pi, d) in sorted(st)]
                   for st in merged_states]

    logger.debug("LALR tables for %r: %d states (%d canonical), %d actions, %d resolved by priority",
                 start, len(merged_states), len(states), len(action), len(resolved))

    return Tables(
        action=action,
        goto=goto,
        start_state=m_start_state,
        n_states=len(merged_states),
        prods=prods,
        prod_lhs_ids=[sid(p.lhs) for p in prods],
        prod_rhs_len=[len(p.rhs) for p in prods],
        expected=expected,
        symbols=sym,
        state_items=state_items,
        resolved=resolved,
    )
