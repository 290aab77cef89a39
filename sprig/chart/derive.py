# sprig/chart/derive.py
"""chart 인식 결과에서 유도(derivation) 하나를 골라 트리로 만든다.

선택 규칙
- 유도의 점수 = 사용된 사용자 규칙 프로덕션 priority의 합. 점수가 가장 높은 유도를 고른다
  (보조 규칙 __... 은 자신을 만든 규칙의 priority를 물려받으므로 점수에 다시 더하지 않는다)
- 점수가 같으면 선언 순서가 앞선 프로덕션
- 그래도 같으면 왼쪽 자식부터, 앞쪽 자식이 가장 긴 구간을 가져가는 분할
- 같은 (비단말, 시작, 끝)을 유도하는 도중 다시 만나면 그 경로는 버린다 (순환 차단)

구현
- (비단말, 시작, 끝) 단위의 유도는 명시적 작업 스택으로 처리한다. 아직 계산되지 않은
  자식이 필요하면 그 자식을 스택에 올리고, 자식이 끝나면 부모를 다시 계산한다.
  입력 길이와 무관하게 파이썬 호출 깊이는 프로덕션 우변 길이로 묶인다.
- "rhs[k:]가 tokens[m:e]를 덮을 수 있는 m" 집합은 완료 기록의 역색인
  (비단말, 끝) → {시작} 으로 오른쪽에서 왼쪽으로 계산한다.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from ..builder import TreeBuilder
from ..grammar.model import Production, is_helper
from ..lex import Token

Scored = Tuple[int, list]       # (점수, TreeBuilder.reduce 결과 또는 자식 값 목록)
Key = Tuple[str, int, int]      # (비단말, 시작, 끝)


class _Pending(Exception):
    """아직 계산되지 않은 자식 유도. 작업 스택에 올린 뒤 부모를 다시 계산한다."""

    def __init__(self, key: Key):
        super().__init__(key)
        self.key = key


class Deriver:
    """
    Deriver
    =======
    parse 호출 1회 전용. 인식기가 남긴 completed[(A, i)] = {끝 위치} 만으로
    "A가 tokens[i:e]를 유도하는가"를 판단하고, 위에서 아래로 자식을 배분한다.
    """

    def __init__(self, prods: Sequence[Production], by_lhs: Dict[str, List[int]],
                 tokens: List[Token], completed: Dict[Tuple[str, int], Set[int]],
                 builder: TreeBuilder):
        self.prods = prods
        self.tokens = tokens
        self.completed = completed
        self.builder = builder
        self.ranked: Dict[str, List[int]] = {
            lhs: sorted(idxs, key=lambda pi: (-prods[pi].priority, prods[pi].order))
            for lhs, idxs in by_lhs.items()
        }
        self.starts_by_end: Dict[Tuple[str, int], Set[int]] = {}
        for (name, origin), ends in completed.items():
            for m in ends:
                self.starts_by_end.setdefault((name, m), set()).add(origin)

        self._starts_memo: Dict[Tuple[int, int, int], FrozenSet[int]] = {}
        self._split_memo: Dict[Tuple[int, int, int, int], Scored] = {}
        self._done: Dict[Key, Scored] = {}
        self._failed: Set[Key] = set()
        self._in_progress: Set[Key] = set()

    # ---- 판정 ----
    def starts(self, pi: int, k: int, e: int) -> FrozenSet[int]:
        """프로덕션 pi의 rhs[k:]가 tokens[m:e]를 덮을 수 있는 시작 위치 m들"""
        key = (pi, k, e)
        hit = self._starts_memo.get(key)
        if hit is not None:
            return hit
        rhs = self.prods[pi].rhs
        j = len(rhs)
        cur: FrozenSet[int] = frozenset((e,))
        # 이미 계산된 접미 중 k에 가장 가까운 것부터 이어서 왼쪽으로 넓힌다
        for jj in range(k + 1, len(rhs)):
            memo = self._starts_memo.get((pi, jj, e))
            if memo is not None:
                j, cur = jj, memo
                break
        while j > k:
            j -= 1
            sym = rhs[j]
            nxt: Set[int] = set()
            if sym.is_term:
                for p in cur:
                    if p > 0 and self.tokens[p - 1].type == sym.name:
                        nxt.add(p - 1)
            else:
                for p in cur:
                    nxt |= self.starts_by_end.get((sym.name, p), frozenset())
            cur = frozenset(nxt)
            self._starts_memo[(pi, j, e)] = cur
        self._starts_memo[key] = cur
        return cur

    def fits(self, pi: int, k: int, i: int, e: int) -> bool:
        """프로덕션 pi의 rhs[k:]가 tokens[i:e]를 덮을 수 있는가"""
        return i in self.starts(pi, k, e)

    # ---- 유도 ----
    def derive(self, name: str, i: int, e: int) -> Optional[Scored]:
        """name이 tokens[i:e]를 유도하는 최선의 (점수, 트리 조각). 없으면 None."""
        root: Key = (name, i, e)
        if root in self._done:
            return self._done[root]
        stack: List[Key] = [root]
        self._in_progress.add(root)
        while stack:
            key = stack[-1]
            try:
                out = self._derive_one(key)
            except _Pending as pending:
                stack.append(pending.key)
                self._in_progress.add(pending.key)
                continue
            stack.pop()
            self._in_progress.discard(key)
            if out is None:
                self._failed.add(key)
            else:
                self._done[key] = out
                # 새 유도가 생기면 순환 차단으로 실패했던 구간을 다시 시도할 수 있다
                self._failed.clear()
        return self._done.get(root)

    def _child(self, name: str, i: int, e: int) -> Optional[Scored]:
        key = (name, i, e)
        hit = self._done.get(key)
        if hit is not None:
            return hit
        if key in self._in_progress or key in self._failed:
            return None
        raise _Pending(key)

    def _derive_one(self, key: Key) -> Optional[Scored]:
        name, i, e = key
        best: Optional[Tuple[int, int, list]] = None
        for pi in self.ranked.get(name, ()):
            if not self.fits(pi, 0, i, e):
                continue
            got = self._split(pi, 0, i, e)
            if got is None:
                continue
            p = self.prods[pi]
            score = (0 if is_helper(p.lhs) else p.priority) + got[0]
            if best is None or score > best[0]:
                best = (score, pi, got[1])
        if best is None:
            return None
        return best[0], self.builder.reduce(self.prods[best[1]], best[2])

    def _split(self, pi: int, k: int, i: int, e: int) -> Optional[Scored]:
        """rhs[k:]에 tokens[i:e]를 배분하는 최선의 (점수, 값 목록). fits(pi, k, i, e)를 전제한다."""
        key = (pi, k, i, e)
        hit = self._split_memo.get(key)
        if hit is not None:
            return hit
        rhs = self.prods[pi].rhs
        best: Optional[Scored] = None
        if k == len(rhs):
            best = (0, []) if i == e else None
        elif rhs[k].is_term:
            rest = self._split(pi, k + 1, i + 1, e)
            if rest is not None:
                best = (rest[0], [self.tokens[i]] + rest[1])
        else:
            ends = self.completed.get((rhs[k].name, i), ())
            for m in sorted((m for m in self.starts(pi, k + 1, e) if m in ends), reverse=True):
                child = self._child(rhs[k].name, i, m)
                if child is None:
                    continue
                rest = self._split(pi, k + 1, m, e)
                if rest is None:
                    continue
                score = child[0] + rest[0]
                if best is None or score > best[0]:
                    best = (score, [child[1]] + rest[1])
        # 성공한 분할만 기록한다
        if best is not None:
            self._split_memo[key] = best
        return best
