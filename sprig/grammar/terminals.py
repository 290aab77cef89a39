# sprig/grammar/terminals.py
"""단말 컴파일러.

단말 정의(Expr)를 하나의 정규식 패턴으로 접고, 렉서가 쓸 우선순위 키를 계산한다.

- 단말 → 단말 참조를 풀어 인라인한다 (순환 참조는 TerminalRecursionError)
- 연접(concatenation)은 플래그 집합이 모두 같아야 한다 (다르면 IncompatibleFlags)
- 대안(alternation)은 플래그가 다르면 (?i:...) 같은 국소 플래그로 감싼다
- 대안 순서는 보존된다 → 한 단말 안에서는 앞선 대안이 먼저 매치된다
- precedence = (priority, max_width, definition_length, name)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import regex as re

from .ast import *
from ..errors import (
    GrammarError, IncompatibleFlags, TerminalRecursionError, UndefinedSymbolReference,
    ZeroWidthTerminalError,
)

MAX_WIDTH = 0xFFFFFFFF
DEFAULT_TERMINAL_PRIORITY = 1

FLAG_MAP = {
    'i': re.IGNORECASE,
    'm': re.MULTILINE,
    's': re.DOTALL,
    'l': re.LOCALE,
    'u': re.UNICODE,
    'x': re.VERBOSE,
}
# (?flags:...) 로 국소 적용 가능한 플래그
_SCOPABLE = frozenset("imsx")


def regex_flags(flags: Iterable[str]) -> int:
    f = 0
    for ch in flags:
        f |= FLAG_MAP[ch]
    return f


# ---------- 정규식 폭(width) 추정 ----------

class _WidthScanner:
    """
    정규식 원문을 훑어 매치 길이의 (최소, 최대)를 보수적으로 추정한다.
    무한 반복(*, +, {n,})과 역참조는 최대 길이를 MAX_WIDTH로 본다.
    """

    def __init__(self, src: str, verbose: bool = False):
        self.s = src
        self.i = 0
        self.n = len(src)
        self.verbose = verbose

    def run(self) -> Tuple[int, int]:
        lo, hi = self._alternation()
        # 짝이 맞지 않는 ')' 등은 나머지를 무한대로 취급
        if self.i < self.n:
            return 0, MAX_WIDTH
        return lo, hi

    def _alternation(self) -> Tuple[int, int]:
        lo: Optional[int] = None
        hi = 0
        while True:
            a_lo, a_hi = self._sequence()
            lo = a_lo if lo is None else min(lo, a_lo)
            hi = max(hi, a_hi)
            if self.i < self.n and self.s[self.i] == "|":
                self.i += 1
                continue
            return lo or 0, hi

    def _skip_verbose(self) -> None:
        while self.verbose and self.i < self.n:
            ch = self.s[self.i]
            if ch.isspace():
                self.i += 1
            elif ch == "#":
                j = self.s.find("\n", self.i)
                self.i = self.n if j < 0 else j + 1
            else:
                return

    def _sequence(self) -> Tuple[int, int]:
        lo = hi = 0
        while True:
            self._skip_verbose()
            if self.i >= self.n or self.s[self.i] in "|)":
                return lo, hi
            a_lo, a_hi = self._atom()
            self._skip_verbose()
            a_lo, a_hi = self._quantifier(a_lo, a_hi)
            lo = min(MAX_WIDTH, lo + a_lo)
            hi = min(MAX_WIDTH, hi + a_hi)

    def _atom(self) -> Tuple[int, int]:
        ch = self.s[self.i]
        if ch == "\\":
            return self._escape()
        if ch == "[":
            self._char_class()
            return 1, 1
        if ch == "(":
            return self._group()
        self.i += 1
        if ch in "^$":
            return 0, 0
        return 1, 1

    def _escape(self) -> Tuple[int, int]:
        s, i = self.s, self.i
        if i + 1 >= self.n:
            self.i = self.n
            return 1, 1
        d = s[i + 1]
        self.i = i + 2
        if d in "bBAZzGKm" or d == "M":
            return 0, 0
        if d in "123456789":
            while self.i < self.n and s[self.i].isdigit():
                self.i += 1
            return 0, MAX_WIDTH
        if d in "gk" and self.i < self.n and s[self.i] in "<{":
            self._skip_to(">}")
            return 0, MAX_WIDTH
        if d in "NpP" and self.i < self.n and s[self.i] == "{":
            self._skip_to("}")
        elif d in "pP":
            self.i += 1
        elif d == "x":
            if self.i < self.n and s[self.i] == "{":
                self._skip_to("}")
            else:
                self.i += 2
        elif d == "u":
            self.i += 4
        elif d == "U":
            self.i += 8
        elif d == "0":
            k = 0
            while k < 2 and self.i < self.n and s[self.i] in "01234567":
                self.i += 1
                k += 1
        elif d == "X":
            return 1, MAX_WIDTH
        self.i = min(self.i, self.n)
        return 1, 1

    def _skip_to(self, closers: str) -> None:
        while self.i < self.n and self.s[self.i] not in closers:
            self.i += 1
        self.i = min(self.i + 1, self.n)

    def _char_class(self) -> None:
        s = self.s
        self.i += 1
        if self.i < self.n and s[self.i] == "^":
            self.i += 1
        if self.i < self.n and s[self.i] == "]":
            self.i += 1
        while self.i < self.n:
            ch = s[self.i]
            if ch == "\\":
                self.i += 2
            elif ch == "[" and self.i + 1 < self.n and s[self.i + 1] == ":":
                end = s.find(":]", self.i + 2)
                self.i = self.n if end < 0 else end + 2
            elif ch == "[":
                self._char_class()
            elif ch == "]":
                self.i += 1
                return
            else:
                self.i += 1

    def _group(self) -> Tuple[int, int]:
        s = self.s
        self.i += 1
        zero_width = False
        unknown = False
        if self.i < self.n and s[self.i] == "?":
            self.i += 1
            rest = s[self.i:self.i + 3]
            if rest.startswith("#"):
                self._skip_to(")")
                return 0, 0
            if rest.startswith(("=", "!")):
                zero_width = True
                self.i += 1
            elif rest.startswith(("<=", "<!")):
                zero_width = True
                self.i += 2
            elif rest.startswith(("P<", "<")):
                self._skip_to(">")
            elif rest.startswith("P="):
                self._skip_to(")")
                return 0, MAX_WIDTH
            elif rest.startswith((">", "|", ":")):
                self.i += 1
            elif rest.startswith("("):
                unknown = True
            else:
                # 인라인 플래그: (?imsx) 또는 (?imsx-imsx:...)
                while self.i < self.n and s[self.i] not in ":)":
                    self.i += 1
                if self.i < self.n and s[self.i] == ")":
                    self.i += 1
                    return 0, 0
                self.i += 1
        lo, hi = self._alternation()
        if self.i < self.n and s[self.i] == ")":
            self.i += 1
        if unknown:
            return 0, MAX_WIDTH
        if zero_width:
            return 0, 0
        return lo, hi

    def _quantifier(self, lo: int, hi: int) -> Tuple[int, int]:
        if self.i >= self.n:
            return lo, hi
        ch = self.s[self.i]
        if ch == "*":
            self.i += 1
            res = (0, MAX_WIDTH if hi else 0)
        elif ch == "+":
            self.i += 1
            res = (lo, MAX_WIDTH if hi else 0)
        elif ch == "?":
            self.i += 1
            res = (0, hi)
        elif ch == "{":
            m = re.match(r"\{(\d*)(,?)(\d*)\}", self.s[self.i:])
            if m is None or (not m.group(1) and not m.group(3)):
                return lo, hi
            self.i += m.end()
            n = int(m.group(1) or 0)
            if not m.group(2):
                res = (lo * n, hi * n)
            elif m.group(3):
                res = (lo * n, hi * int(m.group(3)))
            else:
                res = (lo * n, MAX_WIDTH if hi else 0)
        else:
            return lo, hi
        # lazy / possessive 접미
        if self.i < self.n and self.s[self.i] in "?+":
            self.i += 1
        return min(res[0], MAX_WIDTH), min(res[1], MAX_WIDTH)


def regex_width(src: str, flags: Iterable[str] = ()) -> Tuple[int, int]:
    """정규식 원문의 (min_width, max_width) 추정치."""
    return _WidthScanner(src, verbose="x" in set(flags)).run()


# ---------- 패턴 ----------

@dataclass(frozen=True)
class Pattern:
    value: str
    flags: FrozenSet[str] = frozenset()

    def to_regexp(self) -> str:
        raise NotImplementedError

    @property
    def min_width(self) -> int:
        raise NotImplementedError

    @property
    def max_width(self) -> int:
        raise NotImplementedError

    @property
    def type(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class PatternStr(Pattern):
    """문자열 그대로 매치되는 패턴"""

    def to_regexp(self) -> str:
        return re.escape(self.value)

    @property
    def min_width(self) -> int:
        return len(self.value)

    @property
    def max_width(self) -> int:
        return len(self.value)

    @property
    def type(self) -> str:
        return "str"


@dataclass(frozen=True)
class PatternRE(Pattern):
    """정규식 패턴. widths가 주어지지 않으면 원문에서 추정한다."""
    widths: Optional[Tuple[int, int]] = field(default=None, compare=False)

    def __post_init__(self):
        if self.widths is None:
            object.__setattr__(self, "widths", regex_width(self.value, self.flags))

    def to_regexp(self) -> str:
        return self.value

    @property
    def min_width(self) -> int:
        return self.widths[0]

    @property
    def max_width(self) -> int:
        return self.widths[1]

    @property
    def type(self) -> str:
        return "re"


@dataclass(frozen=True)
class TerminalDef:
    """
    컴파일된 단말 1개.
    - anonymous : 규칙 안의 리터럴에서 자동 생성된 단말이면 True
    """
    name: str
    pattern: Pattern
    priority: int = DEFAULT_TERMINAL_PRIORITY
    anonymous: bool = False

    @property
    def precedence(self) -> Tuple[int, int, int, str]:
        return (self.priority, self.pattern.max_width, len(self.pattern.value), self.name)

    @property
    def sort_key(self) -> Tuple[int, int, int, str]:
        """정렬 시 앞설수록 우선: 높은 priority, 긴 max_width, 긴 정의, 사전순 이름"""
        return (-self.priority, -self.pattern.max_width, -len(self.pattern.value), self.name)

    def compile(self):
        return re.compile(self.pattern.to_regexp(), regex_flags(self.pattern.flags))


def order_terminals(terms: Iterable[TerminalDef]) -> List[TerminalDef]:
    return sorted(terms, key=lambda t: t.sort_key)


# ---------- 패턴 조합 ----------

def _wrap(p: Pattern) -> str:
    if isinstance(p, PatternStr):
        return p.to_regexp()
    return f"(?:{p.to_regexp()})"


def _concat(parts: List[Pattern], owner: str) -> Pattern:
    if not parts:
        return PatternStr("")
    if len(parts) == 1:
        return parts[0]
    flag_sets = {p.flags for p in parts}
    if len(flag_sets) > 1:
        shown = ", ".join(sorted("".join(sorted(f)) or "-" for f in flag_sets))
        raise IncompatibleFlags(
            f"Terminal {owner} joins patterns with different flags ({shown})", symbol=owner)
    flags = parts[0].flags
    if all(isinstance(p, PatternStr) for p in parts):
        return PatternStr("".join(p.value for p in parts), flags)
    lo = min(MAX_WIDTH, sum(p.min_width for p in parts))
    hi = min(MAX_WIDTH, sum(p.max_width for p in parts))
    return PatternRE("".join(_wrap(p) for p in parts), flags, widths=(lo, hi))


def _alternate(alts: List[Pattern], owner: str) -> Pattern:
    if len(alts) == 1:
        return alts[0]
    lo = min(p.min_width for p in alts)
    hi = max(p.max_width for p in alts)
    flag_sets = {p.flags for p in alts}
    if len(flag_sets) == 1:
        flags = alts[0].flags
        return PatternRE("(?:" + "|".join(p.to_regexp() for p in alts) + ")", flags, widths=(lo, hi))
    pieces: List[str] = []
    for p in alts:
        if p.flags - _SCOPABLE:
            raise IncompatibleFlags(
                f"Terminal {owner}: flags {''.join(sorted(p.flags - _SCOPABLE))} cannot be "
                f"mixed with other flags in an alternation", symbol=owner)
        scoped = "".join(sorted(p.flags))
        pieces.append(f"(?{scoped}:{p.to_regexp()})")
    return PatternRE("(?:" + "|".join(pieces) + ")", frozenset(), widths=(lo, hi))


def _repeat(p: Pattern, suffix: str, rep: Optional[Tuple[int, int]]) -> Pattern:
    if suffix == Suffix.NONE:
        return p
    body = _wrap(p)
    if suffix == Suffix.OPT:
        return PatternRE(f"{body}?", p.flags, widths=(0, p.max_width))
    if suffix == Suffix.STAR:
        return PatternRE(f"{body}*", p.flags, widths=(0, MAX_WIDTH))
    if suffix == Suffix.PLUS:
        return PatternRE(f"{body}+", p.flags, widths=(p.min_width, MAX_WIDTH))
    lo, hi = rep
    if lo == hi and isinstance(p, PatternStr):
        return PatternStr(p.value * lo, p.flags)
    quant = f"{{{lo}}}" if lo == hi else f"{{{lo},{hi}}}"
    return PatternRE(f"{body}{quant}", p.flags,
                     widths=(min(MAX_WIDTH, p.min_width * lo), min(MAX_WIDTH, p.max_width * hi)))


def literal_pattern(lit: Lit) -> Pattern:
    flags = frozenset(lit.flags)
    if lit.kind == "str":
        return PatternStr(lit.text, flags)
    return PatternRE(lit.text, flags)


def range_pattern(rng: Range) -> Pattern:
    return PatternRE(f"[{re.escape(rng.lo)}-{re.escape(rng.hi)}]", frozenset(), widths=(1, 1))


# ---------- 단말 컴파일러 ----------

class TerminalCompiler:
    """
    TerminalCompiler
    ================
    단말 선언 표를 들고 이름 → Pattern 을 지연 계산(memoize)한다.
    `_visiting` 스택으로 순환 참조를 잡는다.
    """

    def __init__(self, decls: Iterable[TerminalDecl], declared: Iterable[str] = ()):
        self.decls: Dict[str, TerminalDecl] = {}
        for d in decls:
            self.decls[d.name] = d
        self.declared = set(declared)
        self._cache: Dict[str, Pattern] = {}
        self._visiting: List[str] = []

    def pattern_of(self, name: str, span: Optional[Span] = None) -> Pattern:
        if name in self._cache:
            return self._cache[name]
        if name in self._visiting:
            cycle = self._visiting[self._visiting.index(name):] + [name]
            raise TerminalRecursionError(
                f"Terminal recursion: {' -> '.join(cycle)}", symbol=name)
        decl = self.decls.get(name)
        if decl is None:
            line, col = (span.line, span.col) if span else (None, None)
            if name in self.declared:
                raise GrammarError(f"Declared terminal {name} has no pattern to reference",
                                   symbol=name, line=line, column=col)
            raise UndefinedSymbolReference(f"Undefined terminal {name}",
                                           symbol=name, line=line, column=col)
        self._visiting.append(name)
        try:
            pat = self.compile_expr(decl.expr, name)
        finally:
            self._visiting.pop()
        _validate_regex(pat, name)
        self._cache[name] = pat
        return pat

    def compile_expr(self, expr: Expr, owner: str) -> Pattern:
        alts = [_concat([self._atom(a, owner) for a in s.items], owner) for s in expr.alts]
        return _alternate(alts, owner)

    def _atom(self, a: Atom, owner: str) -> Pattern:
        node = a.node
        if isinstance(node, Lit):
            base = literal_pattern(node)
        elif isinstance(node, Range):
            base = range_pattern(node)
        elif isinstance(node, Name):
            if not node.is_term:
                line, col = (node.span.line, node.span.col) if node.span else (None, None)
                raise GrammarError(f"Terminal {owner} cannot reference rule {node.ident!r}",
                                   symbol=owner, line=line, column=col)
            base = self.pattern_of(node.ident, node.span)
        elif isinstance(node, Group):
            base = self.compile_expr(node.expr, owner)
        elif isinstance(node, Maybe):
            base = _repeat(self.compile_expr(node.expr, owner), Suffix.OPT, None)
        else:
            raise GrammarError(f"Unsupported construct in terminal {owner}", symbol=owner)
        return _repeat(base, a.suffix, a.repeat)

    def terminal(self, name: str) -> TerminalDef:
        decl = self.decls[name]
        priority = DEFAULT_TERMINAL_PRIORITY if decl.priority is None else decl.priority
        return TerminalDef(name, self.pattern_of(name, decl.span), priority)


def _validate_regex(p: Pattern, owner: str) -> None:
    try:
        re.compile(p.to_regexp(), regex_flags(p.flags))
    except re.error as e:
        raise GrammarError(f"Terminal {owner} has an invalid regular expression: {e}",
                           symbol=owner) from e
    except ValueError as e:
        raise IncompatibleFlags(f"Terminal {owner}: {e}", symbol=owner) from e


def ensure_lexable(t: TerminalDef) -> None:
    """렉서에 올라갈 단말은 빈 문자열과 매치될 수 없어야 한다."""
    if t.pattern.min_width == 0:
        raise ZeroWidthTerminalError(
            f"Terminal {t.name} can match the empty string ({t.pattern.to_regexp()!r})",
            symbol=t.name)
