# sprig/tree.py
"""파스 트리 노드."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

from .lex import Token

Child = Union["Tree", Token, None]     # None = [item] 부재 표시(placeholder)


@dataclass(frozen=True)
class Tree:
    """
    Tree
    ====
    - tag     : 규칙 이름 또는 별칭(alias)
    - children: Tree / Token / None 튜플 (대안의 항목 순서 그대로)
    """
    tag: str
    children: Tuple[Child, ...] = ()

    def iter_subtrees(self) -> Iterator["Tree"]:
        """전위 순회로 자기 자신과 모든 하위 Tree."""
        stack = [self]
        while stack:
            t = stack.pop()
            yield t
            stack.extend(c for c in reversed(t.children) if isinstance(c, Tree))

    def find_tag(self, tag: str) -> Iterator["Tree"]:
        return (t for t in self.iter_subtrees() if t.tag == tag)

    def tokens(self) -> Iterator[Token]:
        """트리에 들어있는 토큰들을 입력 순서대로."""
        for c in self.children:
            if isinstance(c, Tree):
                yield from c.tokens()
            elif c is not None:
                yield c

    def span(self) -> Optional[Tuple[int, int]]:
        """하위 토큰들이 덮는 [start_pos, end_pos). 토큰이 없으면 None."""
        first = last = None
        for tok in self.tokens():
            if first is None:
                first = tok
            last = tok
        if first is None:
            return None
        return first.start_pos, last.end_pos

    def pretty(self, indent: str = "  ") -> str:
        """들여쓰기 텍스트 표현 (CLI 출력용)."""
        lines = []
        self._pretty(0, indent, lines)
        return "\n".join(lines)

    def _pretty(self, level: int, indent: str, lines: list) -> None:
        lines.append(indent * level + self.tag)
        for c in self.children:
            if isinstance(c, Tree):
                c._pretty(level + 1, indent, lines)
            elif c is None:
                lines.append(indent * (level + 1) + "<none>")
            else:
                lines.append(indent * (level + 1) + f"{c.type} {c.value!r}")
