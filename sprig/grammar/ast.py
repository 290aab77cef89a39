# sprig/grammar/ast.py
"""Grammar AST
- RuleDecl     : name{params}.prio: expr   (규칙 / 템플릿 선언)
- TerminalDecl : NAME.prio: expr
- IgnoreDecl / ImportDecl / DeclareDecl : %ignore, %import, %declare
- Expr/Seq/Atom: EBNF 표현을 그대로 보존(?,*,+,~,[] 포함)
"""

from __future__     import annotations
from dataclasses    import dataclass, field
from typing         import List, Optional, Union, Tuple

@dataclass
class Span:
    start: int
    end: int
    line: int
    col: int

class Suffix:
    NONE   = "none"
    OPT    = "opt"
    STAR   = "star"
    PLUS   = "plus"
    REPEAT = "repeat"   # ~n, ~n..m  (Atom.repeat = (n, m))

@dataclass
class Name:
    """규칙(소문자) 또는 단말(대문자) 참조"""
    ident: str
    span: Optional[Span] = None

    @property
    def is_term(self) -> bool:
        return self.ident.lstrip("_")[:1].isupper()

@dataclass
class Lit:
    """
    리터럴.
    - kind : 'str' ("...") | 're' (/.../)
    - text : 이스케이프가 풀린 문자열 / 정규식 원문
    - flags: 'i','m','s','l','u','x' 의 부분집합
    """
    kind: str
    text: str
    flags: str = ""
    span: Optional[Span] = None

@dataclass
class Range:
    """"a".."z" 문자 범위"""
    lo: str
    hi: str
    span: Optional[Span] = None

@dataclass
class Group:
    expr: "Expr"
    span: Optional[Span] = None

@dataclass
class Maybe:
    """[ ... ]: 플레이스홀더를 남길 수 있는 선택 항목"""
    expr: "Expr"
    span: Optional[Span] = None

@dataclass
class TemplateCall:
    name: str
    args: List["Expr"]
    span: Optional[Span] = None


AtomKind = Union[Name, Lit, Range, Group, Maybe, TemplateCall]

# EBNF 표현 구조

@dataclass
class Atom:
    node: AtomKind
    suffix: str = Suffix.NONE
    repeat: Optional[Tuple[int, int]] = None
    span: Optional[Span] = None

@dataclass
class Seq:
    """
    대안(alt) 하나의 시퀀스.
    - items: Atom 리스트 (빈 리스트 = ε)
    - alias: `-> name` 별칭(없으면 None)
    """
    items: List[Atom]
    alias: Optional[str] = None


@dataclass
class Expr:
    alts: List[Seq]

@dataclass
class RuleDecl:
    """
    규칙 선언. params가 비어있지 않으면 템플릿 선언이다.
    name에는 수식 접두어(!, ?)가 제거된 이름이 들어간다.
    """
    name: str
    expr: Expr
    params: List[str] = field(default_factory=list)
    priority: Optional[int] = None
    keep_all_tokens: bool = False   # !rule
    expand1: bool = False           # ?rule
    span: Optional[Span] = None

    @property
    def is_template(self) -> bool:
        return bool(self.params)

@dataclass
class TerminalDecl:
    name: str
    expr: Expr
    priority: Optional[int] = None
    span: Optional[Span] = None

@dataclass
class IgnoreDecl:
    """%ignore NAME | "lit" | /re/  (expr은 단일 Atom 시퀀스)"""
    expr: Expr
    span: Optional[Span] = None

@dataclass
class ImportDecl:
    """
    %import a.b.NAME [-> alias]  또는  %import a.b (X, y, Z)
    - path : 모듈 경로 (예: ('common',))
    - names: (원래 이름, 새 이름) 목록
    """
    path: Tuple[str, ...]
    names: List[Tuple[str, str]]
    span: Optional[Span] = None

@dataclass
class DeclareDecl:
    names: List[str]
    span: Optional[Span] = None


@dataclass
class GrammarFile:
    rules: List[RuleDecl] = field(default_factory=list)
    terminals: List[TerminalDecl] = field(default_factory=list)
    ignores: List[IgnoreDecl] = field(default_factory=list)
    imports: List[ImportDecl] = field(default_factory=list)
    declares: List[DeclareDecl] = field(default_factory=list)

    @property
    def templates(self) -> List[RuleDecl]:
        return [r for r in self.rules if r.is_template]

    @property
    def plain_rules(self) -> List[RuleDecl]:
        return [r for r in self.rules if not r.is_template]


# ---- 표현식 순회 유틸 ----

def map_atoms(expr: Expr, fn) -> Expr:
    """
    expr 안의 모든 Atom에 fn(atom) -> Atom 을 적용한 새 Expr을 만든다.
    Group/Maybe/TemplateCall 내부는 fn 적용 **전에** 먼저 재귀 변환한다.
    """
    new_alts: List[Seq] = []
    for s in expr.alts:
        new_items: List[Atom] = []
        for a in s.items:
            node = a.node
            if isinstance(node, Group):
                node = Group(map_atoms(node.expr, fn), span=node.span)
            elif isinstance(node, Maybe):
                node = Maybe(map_atoms(node.expr, fn), span=node.span)
            elif isinstance(node, TemplateCall):
                node = TemplateCall(node.name, [map_atoms(x, fn) for x in node.args], span=node.span)
            new_items.append(fn(Atom(node, a.suffix, a.repeat, a.span)))
        new_alts.append(Seq(new_items, alias=s.alias))
    return Expr(new_alts)


def iter_names(expr: Expr):
    """expr 안에서 참조되는 Name 노드를 모두 내보낸다(템플릿 인자 포함)."""
    for s in expr.alts:
        for a in s.items:
            node = a.node
            if isinstance(node, Name):
                yield node
            elif isinstance(node, (Group, Maybe)):
                yield from iter_names(node.expr)
            elif isinstance(node, TemplateCall):
                for arg in node.args:
                    yield from iter_names(arg)


def rename_expr(expr: Expr, mapping) -> Expr:
    """Name 참조와 템플릿 호출 이름을 mapping에 따라 바꾼다."""
    def _fn(a: Atom) -> Atom:
        node = a.node
        if isinstance(node, Name) and node.ident in mapping:
            return Atom(Name(mapping[node.ident], node.span), a.suffix, a.repeat, a.span)
        if isinstance(node, TemplateCall) and node.name in mapping:
            return Atom(TemplateCall(mapping[node.name], node.args, node.span), a.suffix, a.repeat, a.span)
        return a
    return map_atoms(expr, _fn)
