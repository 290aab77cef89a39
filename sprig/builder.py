# sprig/builder.py
"""Tree Builder: 파서 엔진이 고른 유도(derivation)를 출력 트리로 만든다.

두 엔진(LALR / chart) 모두 프로덕션 하나가 완성될 때마다 `reduce(prod, values)`를 호출한다.
`values`의 각 원소는 우변 심볼 하나에 대응한다.
    - 단말   : Token
    - 비단말 : 그 비단말을 reduce한 결과(부모에 끼워 넣을 자식 리스트)

규칙
----
- 노드 태그 = alias 또는 규칙 이름
- 보조 규칙(__...)과 _rule 은 노드를 만들지 않고 자식을 부모에 펼친다
- ?rule 은 alias가 없고 자식이 정확히 1개이면 펼친다
- filter_out 토큰은 버린다 (keep_all_tokens 이면 유지)
- [item] 의 빈 대안은 maybe_placeholders 이면 None 을 남긴다
"""

from __future__ import annotations
from typing import Iterable, List, Sequence

from .grammar.model import Production, is_inlined_rule
from .lex import LexerState, Token
from .tree import Child, Tree


class TreeBuilder:
    def __init__(self, maybe_placeholders: bool = False, keep_all_tokens: bool = False):
        self.maybe_placeholders = maybe_placeholders
        self.keep_all_tokens = keep_all_tokens

    def reduce(self, prod: Production, values: Sequence) -> List[Child]:
        kids: List[Child] = []
        for sym, v in zip(prod.rhs, values):
            if sym.is_term:
                if sym.filter_out and not self.keep_all_tokens:
                    continue
                kids.append(v)
            else:
                kids.extend(v)
        if not prod.rhs and prod.placeholders and self.maybe_placeholders:
            kids = [None] * prod.placeholders

        if prod.alias is None:
            if is_inlined_rule(prod.lhs):
                return kids
            if prod.options.expand1 and len(kids) == 1:
                return kids
        return [Tree(prod.alias or prod.lhs, tuple(kids))]

    def finish(self, result: Sequence[Child], start: str, state: LexerState) -> Tree:
        """시작 규칙의 reduce 결과를 루트 Tree 하나로 만들고, 필요하면 무시된 토큰을 되살린다."""
        if len(result) == 1 and isinstance(result[0], Tree):
            root = result[0]
        else:
            root = Tree(start, tuple(result))
        if self.keep_all_tokens and state.ignored:
            root = weave_ignored(root, state.ignored)
        return root


# ---- 무시된 토큰 되살리기 ----

def weave_ignored(root: Tree, ignored: Iterable[Token]) -> Tree:
    """
    무시된 토큰을 그 위치를 덮는 가장 깊은 노드에 끼워 넣는다.
    어느 노드의 범위에도 들지 않는 앞/뒤 토큰은 루트에 붙는다.
    기존 자식들의 순서는 바꾸지 않는다.
    """
    toks = sorted(ignored, key=lambda t: t.start_pos)
    return _weave(root, toks) if toks else root


def _weave(node: Tree, toks: List[Token]) -> Tree:
    kids = list(node.children)
    spans = [k.span() if isinstance(k, Tree) else None for k in kids]
    per_child: List[List[Token]] = [[] for _ in kids]
    loose: List[Token] = []
    for t in toks:
        for i, sp in enumerate(spans):
            if sp is not None and sp[0] <= t.start_pos and t.end_pos <= sp[1]:
                per_child[i].append(t)
                break
        else:
            loose.append(t)

    out: List[Child] = []
    j = 0
    for i, k in enumerate(kids):
        if per_child[i]:
            k = _weave(k, per_child[i])
        if isinstance(k, Tree):
            start = spans[i][0] if spans[i] is not None else None
        elif k is not None:
            start = k.start_pos
        else:
            start = None
        if start is not None:
            while j < len(loose) and loose[j].start_pos < start:
                out.append(loose[j])
                j += 1
        out.append(k)
    out.extend(loose[j:])
    return Tree(node.tag, tuple(out))
