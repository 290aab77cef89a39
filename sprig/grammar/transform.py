# sprig/grammar/transform.py
"""EBNF(?,[],*,+,~,그룹)를 BNF로 전개하고 Grammar Model을 만든다.

보조 규칙(helper)
----------------
- item?     → __opt_<h>   : item | ε
- [item]    → __maybe_<h> : item | ε   (ε 대안에 placeholder 개수 기록)
- item*     → __star_<h>  : __star_<h> item | ε   (좌재귀)
- item+     → __plus_<h>  : item __star_<h>
- item~n    → item을 n번 이어붙여 제자리에 전개
- item~n..m → __range_<h> : 길이 n..m 각각을 대안으로
- (a | b)   → __group_<h> : a | b      (대안이 하나뿐인 그룹은 제자리에 펼침)
- 보조 규칙의 프로덕션은 자신을 만든 규칙의 priority를 물려받고, <h>에도 그 priority가 들어간다

<h>는 전개된 본문(심볼 열), keep-tokens 여부, priority로 만든 내용 해시이므로
같은 부분 패턴은 같은 보조 규칙을 재사용한다.
"""

from __future__     import annotations
import hashlib
import logging
import regex as re
from typing         import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .ast           import *
from .model         import Grammar, Production, RuleOptions, Symbol, HELPER_PREFIX
from .terminals     import (
    TerminalCompiler, TerminalDef, ensure_lexable, literal_pattern, order_terminals, range_pattern,
    DEFAULT_TERMINAL_PRIORITY, Pattern, PatternStr,
)
from ..errors       import (
    GrammarError, NameCollision, UndefinedSymbolReference, UnknownStartRule,
)

logger = logging.getLogger(__name__)

# ~n..m 에서 m - n 이 이보다 크면 경고
RANGE_WARNING_WIDTH = 50

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# 익명 구두점 리터럴의 단말 이름
_PUNCT_NAMES = {
    ".": "DOT", ",": "COMMA", ":": "COLON", ";": "SEMICOLON",
    "+": "PLUS", "-": "MINUS", "*": "STAR", "/": "SLASH", "\\": "BACKSLASH",
    "|": "VBAR", "?": "QMARK", "!": "BANG", "@": "AT", "#": "HASH",
    "$": "DOLLAR", "%": "PERCENT", "^": "CIRCUMFLEX", "&": "AMPERSAND",
    "_": "UNDERSCORE", "<": "LESSTHAN", ">": "MORETHAN", "=": "EQUAL",
    '"': "DBLQUOTE", "'": "QUOTE", "`": "BACKQUOTE", "~": "TILDE",
    "(": "LPAR", ")": "RPAR", "{": "LBRACE", "}": "RBRACE",
    "[": "LSQB", "]": "RSQB", "\n": "NEWLINE", "\r\n": "CRLF", "\t": "TAB", " ": "SPACE",
}


def _loc(span: Optional[Span]) -> Tuple[Optional[int], Optional[int]]:
    return (span.line, span.col) if span else (None, None)


def _digest(*parts: str) -> str:
    h = hashlib.sha1("\x1f".join(parts).encode("utf-8"))
    return h.hexdigest()[:8]


def _syms_key(syms: Sequence[Symbol]) -> str:
    return " ".join(f"{s.name}{'!' if s.filter_out else ''}" for s in syms)


class _Lowering:
    """
    _Lowering
    =========
    템플릿이 전개된 GrammarFile 하나를 받아 프로덕션/단말 표를 채운다.

    - rule_names : 사용자 규칙 이름 (보조 규칙 이름 충돌 검사용)
    - helpers    : 만들어진 보조 규칙 이름 → 본문 키
    - anon       : (kind, text, flags) → 익명 단말 이름
    """

    def __init__(self, g: GrammarFile):
        self.g = g
        self.prods: List[Production] = []
        self.helpers: Dict[str, str] = {}
        self.prio = 0                   # 지금 전개 중인 규칙의 priority (보조 규칙이 물려받는다)

        self.rule_names: Dict[str, RuleDecl] = {}
        for r in g.rules:
            if r.name in self.rule_names:
                line, col = _loc(r.span)
                raise NameCollision(f"Rule {r.name!r} is defined more than once",
                                    symbol=r.name, line=line, column=col)
            self.rule_names[r.name] = r

        term_decls: Dict[str, TerminalDecl] = {}
        for t in g.terminals:
            if t.name in term_decls:
                line, col = _loc(t.span)
                raise NameCollision(f"Terminal {t.name} is defined more than once",
                                    symbol=t.name, line=line, column=col)
            term_decls[t.name] = t

        self.declared: Set[str] = set()
        for d in g.declares:
            for n in d.names:
                if not Name(n).is_term:
                    line, col = _loc(d.span)
                    raise GrammarError(f"%declare expects terminal names, got {n!r}",
                                       symbol=n, line=line, column=col)
                self.declared.add(n)

        self.tc = TerminalCompiler(term_decls.values(), self.declared)
        self.term_decls = term_decls
        self.extra_terms: Dict[str, TerminalDef] = {}
        self.anon: Dict[Tuple[str, str, frozenset], str] = {}
        self._anon_id = 0
        self._seed_anonymous()

    # ---- 익명 단말 ----
    def _seed_anonymous(self) -> None:
        """리터럴 하나로만 정의된 사용자 단말은 같은 리터럴의 익명 단말로 재사용한다."""
        for t in self.term_decls.values():
            if len(t.expr.alts) != 1 or len(t.expr.alts[0].items) != 1:
                continue
            a = t.expr.alts[0].items[0]
            if a.suffix == Suffix.NONE and isinstance(a.node, Lit):
                key = (a.node.kind, a.node.text, frozenset(a.node.flags))
                self.anon.setdefault(key, t.name)

    def _taken(self, name: str) -> bool:
        return name in self.term_decls or name in self.extra_terms or name in self.declared

    def _new_anon_name(self, pattern: Pattern) -> str:
        if isinstance(pattern, PatternStr):
            v = pattern.value
            cand = None
            if _IDENT_RE.fullmatch(v) and not v.startswith(HELPER_PREFIX):
                cand = v.upper()
            elif v in _PUNCT_NAMES:
                cand = _PUNCT_NAMES[v]
            if cand is not None and not self._taken(cand):
                return cand
        while True:
            name = f"__ANON_{self._anon_id}"
            self._anon_id += 1
            if not self._taken(name):
                return name

    def anonymous_terminal(self, key: Tuple[str, str, frozenset], pattern: Pattern) -> str:
        name = self.anon.get(key)
        if name is None:
            name = self._new_anon_name(pattern)
            self.anon[key] = name
            self.extra_terms[name] = TerminalDef(name, pattern, DEFAULT_TERMINAL_PRIORITY, anonymous=True)
        return name

    # ---- 보조 규칙 ----
    def _helper_name(self, kind: str, keep: bool, key: str) -> str:
        return f"{HELPER_PREFIX}{kind}_{_digest(kind, str(keep), str(self.prio), key)}"

    def _helper(self, kind: str, keep: bool, alts: List[Tuple[Tuple[Symbol, ...], int]],
                key: Optional[str] = None) -> Symbol:
        if key is None:
            key = "|".join(f"{_syms_key(rhs)}#{ph}" for rhs, ph in alts)
        name = self._helper_name(kind, keep, key)
        if name in self.rule_names:
            raise NameCollision(f"Rule {name!r} collides with a generated helper rule", symbol=name)
        prev = self.helpers.get(name)
        if prev is None:
            self.helpers[name] = key
            opts = RuleOptions(keep_all_tokens=keep)
            for i, (rhs, ph) in enumerate(alts):
                self.prods.append(Production(name, rhs, priority=self.prio, order=i, options=opts,
                                             placeholders=ph))
        elif prev != key:
            raise NameCollision(f"Helper rule {name!r} hashes two different bodies", symbol=name)
        return Symbol(name, False)

    # ---- 전개 ----
    def lower_rules(self) -> None:
        for r in self.g.rules:
            opts = RuleOptions(keep_all_tokens=r.keep_all_tokens, expand1=r.expand1)
            prio = self.prio = r.priority or 0
            for i, seq in enumerate(r.expr.alts):
                rhs = tuple(self._lower_seq(seq.items, r.keep_all_tokens))
                self.prods.append(Production(r.name, rhs, alias=seq.alias, priority=prio,
                                             order=i, options=opts))
        self.prio = 0

    def _lower_seq(self, items: Iterable[Atom], keep: bool) -> List[Symbol]:
        out: List[Symbol] = []
        for a in items:
            out.extend(self._lower_atom(a, keep))
        return out

    def _lower_atom(self, a: Atom, keep: bool) -> List[Symbol]:
        base = self._base(a.node, keep)
        if a.suffix == Suffix.NONE:
            return base
        b = tuple(base)
        if a.suffix == Suffix.OPT:
            return [self._helper("opt", keep, [(b, 0), ((), 0)])]
        if a.suffix == Suffix.STAR:
            return [self._star(b, keep)]
        if a.suffix == Suffix.PLUS:
            star = self._star(b, keep)
            return [self._helper("plus", keep, [(b + (star,), 0)])]
        lo, hi = a.repeat
        if lo > hi:
            line, col = _loc(a.span)
            raise GrammarError(f"Bad repetition range ~{lo}..{hi}", line=line, column=col)
        if lo == hi:
            return list(b * lo)
        if hi - lo > RANGE_WARNING_WIDTH:
            line, col = _loc(a.span)
            logger.warning("Repetition ~%d..%d at %s:%s expands into %d alternatives",
                           lo, hi, line, col, hi - lo + 1)
        return [self._helper("range", keep, [(b * n, 0) for n in range(lo, hi + 1)])]

    def _star(self, b: Tuple[Symbol, ...], keep: bool) -> Symbol:
        key = _syms_key(b)
        me = Symbol(self._helper_name("star", keep, key), False)
        return self._helper("star", keep, [((me,) + b, 0), ((), 0)], key=key)

    def _base(self, node: AtomKind, keep: bool) -> List[Symbol]:
        if isinstance(node, Name):
            return [self._ref(node, keep)]
        if isinstance(node, Lit):
            pat = literal_pattern(node)
            name = self.anonymous_terminal((node.kind, node.text, frozenset(node.flags)), pat)
            return [Symbol(name, True, filter_out=(node.kind == "str" and not keep))]
        if isinstance(node, Range):
            name = self.anonymous_terminal(("range", f"{node.lo}..{node.hi}", frozenset()),
                                           range_pattern(node))
            return [Symbol(name, True)]
        if isinstance(node, Group):
            alts = [tuple(self._lower_seq(s.items, keep)) for s in node.expr.alts]
            if len(alts) == 1:
                return list(alts[0])
            return [self._helper("group", keep, [(rhs, 0) for rhs in alts])]
        if isinstance(node, Maybe):
            alts = [tuple(self._lower_seq(s.items, keep)) for s in node.expr.alts]
            markers = _visible_count(alts[0]) if len(alts) == 1 else 1
            return [self._helper("maybe", keep, [(rhs, 0) for rhs in alts] + [((), markers)])]
        if isinstance(node, TemplateCall):
            line, col = _loc(node.span)
            raise GrammarError(f"Unexpanded template call {node.name!r}", symbol=node.name,
                               line=line, column=col)
        raise TypeError(f"unknown atom node: {node!r}")

    def _ref(self, node: Name, keep: bool) -> Symbol:
        ident = node.ident
        line, col = _loc(node.span)
        if node.is_term:
            if not self._taken(ident):
                raise UndefinedSymbolReference(f"Undefined terminal {ident}",
                                               symbol=ident, line=line, column=col)
            return Symbol(ident, True, filter_out=(ident.startswith("_") and not keep))
        if ident not in self.rule_names:
            raise UndefinedSymbolReference(f"Undefined rule {ident!r}",
                                           symbol=ident, line=line, column=col)
        return Symbol(ident, False)

    # ---- %ignore ----
    def lower_ignores(self) -> Set[str]:
        names: Set[str] = set()
        for i, ig in enumerate(self.g.ignores):
            alts = ig.expr.alts
            single = alts[0].items[0] if len(alts) == 1 and len(alts[0].items) == 1 else None
            if single is not None and single.suffix == Suffix.NONE:
                node = single.node
                if isinstance(node, Name):
                    if not node.is_term:
                        line, col = _loc(ig.span)
                        raise GrammarError(f"%ignore expects a terminal, got rule {node.ident!r}",
                                           symbol=node.ident, line=line, column=col)
                    if not self._taken(node.ident):
                        line, col = _loc(ig.span)
                        raise UndefinedSymbolReference(f"Undefined terminal {node.ident} in %ignore",
                                                       symbol=node.ident, line=line, column=col)
                    names.add(node.ident)
                    continue
                if isinstance(node, Lit):
                    key = (node.kind, node.text, frozenset(node.flags))
                    names.add(self.anonymous_terminal(key, literal_pattern(node)))
                    continue
            # 복합 패턴은 전용 단말로 컴파일
            name = f"{HELPER_PREFIX}IGNORE_{i}"
            pat = self.tc.compile_expr(ig.expr, name)
            self.extra_terms[name] = TerminalDef(name, pat, DEFAULT_TERMINAL_PRIORITY, anonymous=True)
            names.add(name)
        return names

    # ---- 단말 수집 ----
    def lexed_terminals(self, ignore: Set[str]) -> List[TerminalDef]:
        used: Set[str] = set(ignore)
        for p in self.prods:
            for s in p.rhs:
                if s.is_term:
                    used.add(s.name)
        out: List[TerminalDef] = []
        for name in sorted(used):
            if name in self.extra_terms:
                t = self.extra_terms[name]
            elif name in self.term_decls:
                t = self.tc.terminal(name)
            else:
                continue    # %declare 전용
            ensure_lexable(t)
            out.append(t)
        # 쓰이지 않는 단말도 패턴 오류는 잡는다
        for name in self.term_decls:
            if name not in used:
                self.tc.pattern_of(name, self.term_decls[name].span)
                logger.debug("terminal %s is not used by any rule; not lexed", name)
        return order_terminals(out)


def _visible_count(rhs: Sequence[Symbol]) -> int:
    """부재 표시 개수: 트리에 남는 항목 수(필터 토큰, 인라인 규칙 제외)"""
    n = 0
    for s in rhs:
        if s.is_term:
            n += 0 if s.filter_out else 1
        elif not s.name.startswith("_"):
            n += 1
    return n


def to_grammar(g: GrammarFile, start: Sequence[str] = ("start",)) -> Grammar:
    """
    템플릿이 전개된 GrammarFile → Grammar Model.

    Parameters
    ----------
    g : GrammarFile
        imports가 해석되고 템플릿이 전개된 문법.
    start : Sequence[str]
        시작 규칙 이름들. 하나라도 정의되지 않았으면 UnknownStartRule.
    """
    low = _Lowering(g)
    for s in start:
        if s not in low.rule_names:
            raise UnknownStartRule(f"Unknown start rule {s!r}", symbol=s)
    low.lower_rules()
    ignore = low.lower_ignores()
    terminals = low.lexed_terminals(ignore)
    grammar = Grammar(
        productions=tuple(low.prods),
        terminals=tuple(terminals),
        ignore=frozenset(ignore),
        declared=frozenset(low.declared),
        start=tuple(start),
    )
    logger.debug("grammar lowered: %d productions (%d helper rules), %d terminals, %d ignored",
                 len(grammar.productions), len(low.helpers), len(terminals), len(ignore))
    return grammar
