# sprig/grammar/parser.py
"""sprig 문법 DSL 파서
- 규칙      : name: expr | expr -> alias      (줄바꿈이 선언을 끝낸다)
- 수식 접두 : _name(항상 인라인) / ?name(자식 1개면 인라인) / !name(토큰 모두 보존)
- 단말      : NAME[.prio]: "lit" | "lit"i | /re/flags | "a".."z" | NAME ...
- 수량자    : ? * + ~n ~n..m  /  그룹 ( ... )  /  선택 [ ... ]
- 템플릿    : name{p1, p2}: expr   호출 name{a1, a2}
- 지시자    : %ignore expr / %import mod.NAME [-> new] / %import mod (A, b) / %declare NAME+
- 주석      : // ... 줄 끝까지
- 다음 줄이 '|'로 시작하면 앞 규칙의 대안이 이어지는 것으로 본다.
"""

from __future__ import annotations
import regex as re
from dataclasses import dataclass
from typing import List, Optional, Tuple
from .ast import *
from ..errors import GrammarSyntaxError, caret_snippet

# ---- Lexer 토큰 ----
_TOKEN_SPEC = [
    ("WS",        r"[ \t\f\r]+"),
    ("CONT",      r"\\[ \t\f\r]*\n"),
    ("NEWLINE",   r"\n"),
    ("COMMENT",   r"//[^\n]*"),
    ("DIRECTIVE", r"%[a-z]+"),
    ("ARROW",     r"->"),
    ("DOTDOT",    r"\.\."),
    ("DOT",       r"\."),
    ("COLON",     r":"),
    ("COMMA",     r","),
    ("OR",        r"\|"),
    ("LPAREN",    r"\("),
    ("RPAREN",    r"\)"),
    ("LBRACE",    r"\{"),
    ("RBRACE",    r"\}"),
    ("LBRACK",    r"\["),
    ("RBRACK",    r"\]"),
    ("TILDE",     r"~"),
    ("OP",        r"[+*]|\?(?![a-z_])"),
    ("NUMBER",    r"[+-]?\d+"),
    ("REGEX",     r"/(?!/)(?:\\.|[^/\\\n])+/[imslux]*"),
    ("STRING",    r'"(?:\\.|[^"\\\n])*"i?'),
    ("RULE",      r"!?\??_*[a-z][_a-z0-9]*"),
    ("TERMINAL",  r"_*[A-Z][_A-Z0-9]*"),
]
MASTER_RE = re.compile("|".join(f"(?P<{n}>{p})" for n, p in _TOKEN_SPEC))

_OPENERS = {"LPAREN": "RPAREN", "LBRACK": "RBRACK", "LBRACE": "RBRACE"}

@dataclass
class Tok:
    kind: str
    lexeme: str
    start: int
    end: int
    line: int
    col: int

def _scan(src: str) -> List[Tok]:
    """
    WS/주석/줄잇기는 버리고, NEWLINE은 선언 구분자로 남긴다.
    단 괄호 안의 개행과 '|' 바로 앞의 개행은 버린다.
    """
    raw: List[Tok] = []
    line = col = 1
    i = 0
    while i < len(src):
        m = MASTER_RE.match(src, i)
        if not m:
            raise GrammarSyntaxError(f"Unexpected character {src[i]!r}", line, col,
                                     caret_snippet(src, i))
        kind = m.lastgroup or ""
        lex = m.group(0)
        if kind not in ("WS", "COMMENT", "CONT"):
            raw.append(Tok(kind, lex, i, m.end(), line, col))
        nl_count = lex.count("\n")
        if nl_count:
            line += nl_count
            col = len(lex) - lex.rfind("\n")
        else:
            col += len(lex)
        i = m.end()

    toks: List[Tok] = []
    depth = 0
    for idx, t in enumerate(raw):
        if t.kind in _OPENERS:
            depth += 1
        elif t.kind in _OPENERS.values():
            depth = max(0, depth - 1)
        if t.kind == "NEWLINE":
            if depth > 0:
                continue
            # 다음 유효 토큰이 '|'면 대안이 이어지는 것
            j = idx + 1
            while j < len(raw) and raw[j].kind == "NEWLINE":
                j += 1
            if j < len(raw) and raw[j].kind == "OR":
                continue
            if toks and toks[-1].kind == "NEWLINE":
                continue
        toks.append(t)
    toks.append(Tok("EOF", "", len(src), len(src), line, col))
    return toks


# --- 토큰 스트림 ---
class _TS:
    def __init__(self, toks: List[Tok], src: str):
        self.toks = toks
        self.i = 0
        self.src = src

    def la(self, k: int = 0) -> Tok:
        return self.toks[min(self.i + k, len(self.toks) - 1)]

    def error(self, msg: str, tok: Optional[Tok] = None) -> GrammarSyntaxError:
        t = tok or self.la()
        return GrammarSyntaxError(msg, t.line, t.col, caret_snippet(self.src, t.start))

    def eat(self, kind: str) -> Tok:
        t = self.la()
        if t.kind != kind:
            raise self.error(f"Expected {kind}, got {t.kind}", t)
        self.i += 1
        return t

    def match(self, kind: str) -> Optional[Tok]:
        if self.la().kind == kind:
            return self.eat(kind)
        return None

def _span(t: Tok) -> Span:
    return Span(t.start, t.end, t.line, t.col)

_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "f": "\f", "v": "\v",
                   "0": "\0", "\\": "\\", '"': '"'}

def _unquote_string(s: str) -> str:
    """
    "..." 리터럴 본문의 이스케이프를 푼다.
    알 수 없는 이스케이프(\\d 등)는 역슬래시째 그대로 둔다.
    """
    body = s[1:-1]
    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.append(ch)
            i += 1
            continue
        nxt = body[i + 1]
        if nxt in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[nxt])
            i += 2
        elif nxt == "x" and i + 4 <= len(body):
            out.append(chr(int(body[i + 2:i + 4], 16)))
            i += 4
        elif nxt == "u" and i + 6 <= len(body):
            out.append(chr(int(body[i + 2:i + 6], 16)))
            i += 6
        else:
            out.append(ch + nxt)
            i += 2
    return "".join(out)

def _strip_regex(s: str) -> Tuple[str, str]:
    last = s.rfind("/")
    return s[1:last].replace("\\/", "/"), s[last + 1:]

def _split_rule_name(lexeme: str) -> Tuple[str, bool, bool]:
    """'!?name' → (name, keep_all_tokens, expand1)"""
    keep = lexeme.startswith("!")
    if keep:
        lexeme = lexeme[1:]
    expand1 = lexeme.startswith("?")
    if expand1:
        lexeme = lexeme[1:]
    return lexeme, keep, expand1


# --- Grammar Parsing ---
def parse_grammar(src: str) -> GrammarFile:
    ts = _TS(_scan(src), src)
    g = GrammarFile()

    while True:
        while ts.match("NEWLINE"):
            pass
        t = ts.la()
        if t.kind == "EOF":
            break
        if t.kind == "DIRECTIVE":
            _parse_directive(ts, g)
        elif t.kind == "RULE":
            g.rules.append(_parse_rule_decl(ts))
        elif t.kind == "TERMINAL":
            g.terminals.append(_parse_term_decl(ts))
        else:
            raise ts.error(f"Expected a rule, terminal or directive, got {t.kind}")
        _require_eol(ts)
    return g

def _require_eol(ts: _TS) -> None:
    if ts.la().kind in ("NEWLINE", "EOF"):
        return
    t = ts.la()
    raise ts.error(f"Unexpected {t.kind} {t.lexeme!r} (expected end of line)")

def _parse_rule_decl(ts: _TS) -> RuleDecl:
    name_tok = ts.eat("RULE")
    name, keep, expand1 = _split_rule_name(name_tok.lexeme)
    params: List[str] = []
    if ts.match("LBRACE"):
        while True:
            p_tok = ts.eat("RULE")
            p, p_keep, p_exp = _split_rule_name(p_tok.lexeme)
            if p_keep or p_exp:
                raise ts.error("Template parameters cannot carry modifiers", p_tok)
            params.append(p)
            if not ts.match("COMMA"):
                break
        ts.eat("RBRACE")
    priority = _parse_priority(ts)
    ts.eat("COLON")
    expr = _parse_expansions(ts, allow_alias=True)
    return RuleDecl(name, expr, params=params, priority=priority,
                    keep_all_tokens=keep, expand1=expand1, span=_span(name_tok))

def _parse_term_decl(ts: _TS) -> TerminalDecl:
    name_tok = ts.eat("TERMINAL")
    priority = _parse_priority(ts)
    ts.eat("COLON")
    expr = _parse_expansions(ts, allow_alias=False)
    return TerminalDecl(name_tok.lexeme, expr, priority=priority, span=_span(name_tok))

def _parse_priority(ts: _TS) -> Optional[int]:
    if ts.match("DOT"):
        return int(ts.eat("NUMBER").lexeme)
    return None

def _parse_directive(ts: _TS, g: GrammarFile) -> None:
    d = ts.eat("DIRECTIVE")
    kw = d.lexeme[1:]
    if kw == "ignore":
        g.ignores.append(IgnoreDecl(_parse_expansions(ts, allow_alias=False), span=_span(d)))
    elif kw == "import":
        g.imports.append(_parse_import(ts, d))
    elif kw == "declare":
        names: List[str] = []
        while ts.la().kind in ("TERMINAL", "RULE"):
            names.append(ts.eat(ts.la().kind).lexeme)
        if not names:
            raise ts.error("%declare requires at least one name")
        g.declares.append(DeclareDecl(names, span=_span(d)))
    else:
        raise ts.error(f"Unknown directive %{kw}", d)

def _parse_import(ts: _TS, d: Tok) -> ImportDecl:
    """
    %import common.WS
    %import common.NUMBER -> NUM
    %import common (WS, NUMBER)
    """
    parts: List[str] = [_eat_name(ts)]
    while ts.match("DOT"):
        parts.append(_eat_name(ts))

    if ts.match("LPAREN"):
        names: List[Tuple[str, str]] = []
        while True:
            n = _eat_name(ts)
            names.append((n, n))
            if not ts.match("COMMA"):
                break
        ts.eat("RPAREN")
        return ImportDecl(tuple(parts), names, span=_span(d))

    if len(parts) < 2:
        raise ts.error("%import needs a module path and a symbol (e.g. common.WS)", d)
    symbol = parts[-1]
    alias = symbol
    if ts.match("ARROW"):
        alias = _eat_name(ts)
        if Name(alias).is_term != Name(symbol).is_term:
            raise ts.error(f"Cannot import {symbol} as {alias}: rules and terminals cannot be swapped", d)
    return ImportDecl(tuple(parts[:-1]), [(symbol, alias)], span=_span(d))

def _eat_name(ts: _TS) -> str:
    t = ts.la()
    if t.kind == "TERMINAL":
        return ts.eat("TERMINAL").lexeme
    if t.kind == "RULE" and t.lexeme[0] not in "!?":
        return ts.eat("RULE").lexeme
    raise ts.error(f"Expected a name, got {t.kind}")

_EXPANSION_END = ("OR", "RPAREN", "RBRACK", "RBRACE", "COMMA", "NEWLINE", "EOF", "ARROW")

def _parse_expansions(ts: _TS, allow_alias: bool) -> Expr:
    alts = [_parse_alias(ts, allow_alias)]
    while ts.match("OR"):
        alts.append(_parse_alias(ts, allow_alias))
    return Expr(alts)

def _parse_alias(ts: _TS, allow_alias: bool) -> Seq:
    items: List[Atom] = []
    while ts.la().kind not in _EXPANSION_END:
        items.append(_parse_expr(ts))
    alias: Optional[str] = None
    if ts.la().kind == "ARROW":
        arrow = ts.eat("ARROW")
        if not allow_alias:
            raise ts.error("Aliases are only allowed at the top level of a rule", arrow)
        alias_tok = ts.eat("RULE")
        if alias_tok.lexeme[0] in "!?":
            raise ts.error("Alias names cannot carry modifiers", alias_tok)
        alias = alias_tok.lexeme
    return Seq(items, alias=alias)

def _parse_expr(ts: _TS) -> Atom:
    start = ts.la()
    node = _parse_atom(ts)
    atom = Atom(node, span=_span(start))
    op = ts.match("OP")
    if op is not None:
        atom.suffix = {"?": Suffix.OPT, "*": Suffix.STAR, "+": Suffix.PLUS}[op.lexeme]
    elif ts.match("TILDE"):
        n_tok = ts.eat("NUMBER")
        lo = hi = int(n_tok.lexeme)
        if ts.match("DOTDOT"):
            hi = int(ts.eat("NUMBER").lexeme)
        if lo < 0 or hi < lo:
            raise ts.error(f"Bad repetition range ~{lo}..{hi}", n_tok)
        atom.suffix = Suffix.REPEAT
        atom.repeat = (lo, hi)
    return atom

def _parse_atom(ts: _TS) -> AtomKind:
    t = ts.la()
    if t.kind == "LPAREN":
        ts.eat("LPAREN")
        expr = _parse_expansions(ts, allow_alias=False)
        ts.eat("RPAREN")
        return Group(expr, span=_span(t))
    if t.kind == "LBRACK":
        ts.eat("LBRACK")
        expr = _parse_expansions(ts, allow_alias=False)
        ts.eat("RBRACK")
        return Maybe(expr, span=_span(t))
    if t.kind == "STRING":
        ts.eat("STRING")
        lexeme, flags = (t.lexeme[:-1], "i") if t.lexeme.endswith("i") else (t.lexeme, "")
        text = _unquote_string(lexeme)
        if ts.match("DOTDOT"):
            hi_tok = ts.eat("STRING")
            hi = _unquote_string(hi_tok.lexeme)
            if len(text) != 1 or len(hi) != 1:
                raise ts.error("Range bounds must be single characters", t)
            if ord(hi) < ord(text):
                raise ts.error(f"Empty character range {text!r}..{hi!r}", t)
            return Range(text, hi, span=_span(t))
        if not text:
            raise ts.error("Empty string literals are not allowed", t)
        return Lit("str", text, flags, span=_span(t))
    if t.kind == "REGEX":
        ts.eat("REGEX")
        pat, flags = _strip_regex(t.lexeme)
        return Lit("re", pat, flags, span=_span(t))
    if t.kind in ("RULE", "TERMINAL"):
        if t.kind == "RULE" and t.lexeme[0] in "!?":
            raise ts.error("Rule modifiers (!, ?) are only allowed in declarations", t)
        ts.eat(t.kind)
        if ts.match("LBRACE"):
            args = [_parse_expansions(ts, allow_alias=False)]
            while ts.match("COMMA"):
                args.append(_parse_expansions(ts, allow_alias=False))
            ts.eat("RBRACE")
            return TemplateCall(t.lexeme, args, span=_span(t))
        return Name(t.lexeme, span=_span(t))
    raise ts.error(f"Unexpected token {t.kind} {t.lexeme!r}")
