"""문법 텍스트 로더 + %import 해석.

- load_grammar_text(path): .g 파일 읽기(CLI 전용)
- builtin_resolver: 내장 모듈('common')의 문법 텍스트를 돌려주는 기본 resolver
- resolve_imports(g, resolver): %import 선언을 실제 규칙/단말 선언으로 병합
"""

from __future__ import annotations
from pathlib    import Path
from typing     import Callable, Dict, List, Optional, Set, Tuple

from .ast       import *
from ..errors   import NameCollision, UnresolvedImport

ImportResolver = Callable[[Tuple[str, ...]], Optional[str]]


def load_grammar_text(path: str) -> str:
    """
    Load Grammar Text
    """
    text = Path(path).read_text(encoding="utf-8")
    return text.replace("\r\n", "\n").replace("\r", "\n")


COMMON_GRAMMAR = r"""
// 자주 쓰는 단말 모음. %import common.NAME

// Numbers
DIGIT: "0".."9"
HEXDIGIT: "a".."f" | "A".."F" | DIGIT

INT: DIGIT+
SIGNED_INT: ["+"|"-"] INT
DECIMAL: INT "." INT? | "." INT

_EXP: ("e"|"E") SIGNED_INT
FLOAT: INT _EXP | DECIMAL _EXP?
SIGNED_FLOAT: ["+"|"-"] FLOAT

NUMBER: FLOAT | INT
SIGNED_NUMBER: ["+"|"-"] NUMBER

// Strings
_STRING_INNER: /.*?/
_STRING_ESC_INNER: _STRING_INNER /(?<!\\)(\\\\)*?/
ESCAPED_STRING: "\"" _STRING_ESC_INNER "\""

// Names
LCASE_LETTER: "a".."z"
UCASE_LETTER: "A".."Z"
LETTER: UCASE_LETTER | LCASE_LETTER
WORD: LETTER+
CNAME: ("_"|LETTER) ("_"|LETTER|DIGIT)*

// Whitespace
WS_INLINE: (" "|/\t/)+
WS: /[ \t\f\r\n]/+
CR: /\r/
LF: /\n/
NEWLINE: (CR? LF)+

// Comments
SH_COMMENT: /#[^\n]*/
CPP_COMMENT: /\/\/[^\n]*/
C_COMMENT: "/*" /(.|\n)*?/ "*/"
SQL_COMMENT: /--[^\n]*/
"""

_BUILTIN_MODULES: Dict[Tuple[str, ...], str] = {
    ("common",): COMMON_GRAMMAR,
}


def builtin_resolver(path: Tuple[str, ...]) -> Optional[str]:
    """내장 모듈만 아는 기본 resolver. 모르는 모듈이면 None."""
    return _BUILTIN_MODULES.get(tuple(path))


# ---------- %import 해석 ----------

def _namespaced(ns: str, name: str) -> str:
    """의존 심볼 이름에 모듈 네임스페이스를 붙인다. '_' 접두(필터/인라인 표시)는 보존."""
    prefix = "_" if name.startswith("_") else ""
    body = name.lstrip("_")
    if Name(name).is_term:
        return f"{prefix}{ns.upper()}__{body}"
    return f"{prefix}{ns}__{body}"


def _dependencies(decl) -> Set[str]:
    deps: Set[str] = set()
    for n in iter_names(decl.expr):
        deps.add(n.ident)
    if isinstance(decl, RuleDecl):
        deps -= set(decl.params)
        deps |= _template_calls(decl.expr)
    return deps


def _template_calls(expr: Expr) -> Set[str]:
    out: Set[str] = set()
    for s in expr.alts:
        for a in s.items:
            node = a.node
            if isinstance(node, TemplateCall):
                out.add(node.name)
                for arg in node.args:
                    out |= _template_calls(arg)
            elif isinstance(node, (Group, Maybe)):
                out |= _template_calls(node.expr)
    return out


class _ImportMerger:
    def __init__(self, g: GrammarFile, resolver: ImportResolver, stack: Tuple[Tuple[str, ...], ...]):
        self.g = g
        self.resolver = resolver
        self.stack = stack
        self.out = GrammarFile(rules=list(g.rules), terminals=list(g.terminals),
                               ignores=list(g.ignores), declares=list(g.declares))
        self.local_names: Set[str] = {r.name for r in g.rules} | {t.name for t in g.terminals}
        self.imported: Dict[str, Tuple[Tuple[str, ...], str]] = {}

    def merge(self) -> GrammarFile:
        for imp in self.g.imports:
            mod = self._load_module(imp)
            for symbol, alias in imp.names:
                self._import_symbol(imp, mod, symbol, alias)
        return self.out

    def _load_module(self, imp: ImportDecl) -> GrammarFile:
        from .parser import parse_grammar
        line, col = (imp.span.line, imp.span.col) if imp.span else (None, None)
        dotted = ".".join(imp.path)
        if imp.path in self.stack:
            raise UnresolvedImport(f"Circular import of module {dotted!r}",
                                   symbol=dotted, line=line, column=col)
        text = self.resolver(imp.path)
        if text is None:
            raise UnresolvedImport(f"Cannot resolve module {dotted!r}",
                                   symbol=dotted, line=line, column=col)
        return resolve_imports(parse_grammar(text), self.resolver, self.stack + (imp.path,))

    def _import_symbol(self, imp: ImportDecl, mod: GrammarFile, symbol: str, alias: str) -> None:
        defs: Dict[str, object] = {r.name: r for r in mod.rules}
        defs.update({t.name: t for t in mod.terminals})
        line, col = (imp.span.line, imp.span.col) if imp.span else (None, None)
        if symbol not in defs:
            raise UnresolvedImport(f"Module {'.'.join(imp.path)!r} does not define {symbol!r}",
                                   symbol=symbol, line=line, column=col)

        # 의존 심볼 폐포 수집
        ns = "__".join(imp.path)
        needed: List[str] = []
        seen: Set[str] = set()
        work = [symbol]
        while work:
            name = work.pop()
            if name in seen or name not in defs:
                continue
            seen.add(name)
            needed.append(name)
            work.extend(sorted(_dependencies(defs[name])))

        mapping = {n: _namespaced(ns, n) for n in needed}
        mapping[symbol] = alias

        for name in needed:
            new_name = mapping[name]
            origin = (imp.path, name)
            if new_name in self.local_names:
                raise NameCollision(f"Imported symbol {new_name!r} collides with a local definition",
                                    symbol=new_name, line=line, column=col)
            if new_name in self.imported:
                if self.imported[new_name] == origin:
                    continue
                raise NameCollision(f"Symbol {new_name!r} is imported twice from different definitions",
                                    symbol=new_name, line=line, column=col)
            self.imported[new_name] = origin
            decl = defs[name]
            expr = rename_expr(decl.expr, mapping)
            if isinstance(decl, TerminalDecl):
                self.out.terminals.append(TerminalDecl(new_name, expr, decl.priority, span=decl.span))
            else:
                self.out.rules.append(RuleDecl(new_name, expr, params=list(decl.params),
                                               priority=decl.priority,
                                               keep_all_tokens=decl.keep_all_tokens,
                                               expand1=decl.expand1, span=decl.span))


def resolve_imports(g: GrammarFile, resolver: Optional[ImportResolver] = None,
                    _stack: Tuple[Tuple[str, ...], ...] = ()) -> GrammarFile:
    """GrammarFile의 %import를 모두 해석해, imports가 비어있는 GrammarFile을 돌려준다."""
    if not g.imports:
        return g
    return _ImportMerger(g, resolver or builtin_resolver, _stack).merge()
