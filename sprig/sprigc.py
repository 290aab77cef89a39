# sprig/sprigc.py
"""sprigc – sprig CLI

사용 예)
    $ python -m sprig.sprigc check tests/grammars/calc.g -D
    $ python -m sprig.sprigc lex   tests/grammars/calc.g --text "1 + 2"
    $ python -m sprig.sprigc parse tests/grammars/calc.g --text "1 + 2" --algorithm chart

기능
----
- check : 문법을 컴파일해 요약(규칙/단말/프로덕션, LALR 상태 수, 우선순위로 해소된 충돌)을 출력
- lex   : 문법의 단말로 입력을 standard 모드 토크나이즈
- parse : 입력을 파싱해 트리를 들여쓰기 형식으로 출력

디버그 모드(-D/--debug)를 켜면 sprig 로거를 DEBUG로 올려 파이프라인 단계별 로그를 stderr로 출력합니다.
오류는 모두 종료 코드 2.
"""

from __future__ import annotations
import argparse
import logging
import sys
from typing import List, Optional

from .compiler import Parser, compile_grammar
from .errors import GrammarError, ParseError, SprigError
from .grammar.loader import load_grammar_text

# ------------------------------
# 헬퍼
# ------------------------------

def _eprint(*args, **kw) -> None:
    print(*args, file=sys.stderr, **kw)


def _setup_logging(debug: bool) -> None:
    if not debug:
        return
    root = logging.getLogger("sprig")
    root.setLevel(logging.DEBUG)
    if any(getattr(h, "_sprigc", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("[DEBUG] %(name)s: %(message)s"))
    handler._sprigc = True
    root.addHandler(handler)


def _read_input(args) -> str:
    if args.text is not None:
        return args.text
    with open(args.input, "r", encoding="utf-8") as f:
        return f.read()


def _compile(args, **options) -> Parser:
    src = load_grammar_text(args.file)
    start = getattr(args, "start", None)
    if start:
        options["start"] = start
    return compile_grammar(src, algorithm=args.algorithm, debug=args.debug, **options)


def _report(e: SprigError, text: Optional[str] = None) -> int:
    if isinstance(e, GrammarError):
        _eprint("[GRAMMAR ERROR]", type(e).__name__)
    elif isinstance(e, ParseError):
        _eprint("[PARSE ERROR]", type(e).__name__)
    else:
        _eprint("[ERROR]", type(e).__name__)
    _eprint(str(e))
    if isinstance(e, ParseError) and text is not None:
        _eprint(e.get_context(text))
    return 2

# ------------------------------
# 커맨드 구현
# ------------------------------

def cmd_check(args) -> int:
    try:
        parser = _compile(args)
    except SprigError as e:
        return _report(e)
    except OSError as e:
        _eprint("[ERROR]", type(e).__name__, str(e))
        return 2

    g = parser.grammar
    n_rules = sum(1 for _ in g.iter_user_rules())
    summary = (f"[CHECK OK] algorithm={parser.config.algorithm} start={','.join(g.start)} "
               f"rules={n_rules} terminals={len(g.terminals)} prods={len(g)}")
    tables = getattr(parser.engine, "tables", None)
    if tables:
        summary += " states=" + ",".join(str(t.n_states) for t in tables.values())
    print(summary)

    if args.debug:
        _eprint("\n[Terminals]")
        for t in g.terminals:
            _eprint(f"  {t.name:<16} prio={t.priority} {t.pattern.type}:{t.pattern.value!r}")
        _eprint("\n[Productions]")
        for p in g.productions:
            _eprint("  " + str(p))
        for s, tbl in (tables or {}).items():
            _eprint(f"\n[Resolved conflicts: {s}]")
            _eprint(tbl.pretty_resolutions())
    return 0


def cmd_lex(args) -> int:
    """문법으로 토크나이즈를 수행해 결과를 표준출력으로 보여줍니다."""
    text = None
    try:
        parser = _compile(args)
        text = _read_input(args)
        for i, tok in enumerate(parser.lex(text)):
            print(f"{i:03d}: {tok.type:<12} {tok.value!r}  @{tok.line}:{tok.column}")
        return 0
    except SprigError as e:
        return _report(e, text)
    except OSError as e:
        _eprint("[ERROR]", type(e).__name__, str(e))
        return 2


def cmd_parse(args) -> int:
    text = None
    try:
        parser = _compile(args, keep_all_tokens=args.keep_all_tokens,
                          maybe_placeholders=args.placeholders)
        text = _read_input(args)
        tree = parser.parse(text)
    except SprigError as e:
        return _report(e, text)
    except OSError as e:
        _eprint("[ERROR]", type(e).__name__, str(e))
        return 2
    print(tree.pretty())
    return 0

# ------------------------------
# 엔트리포인트
# ------------------------------

def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("file", help=".g 문법 파일")
    p.add_argument("--algorithm", choices=["deterministic", "chart"], default="deterministic",
                   help="파싱 알고리즘")
    p.add_argument("-D", "--debug", action="store_true", help="디버그 정보를 상세 출력")


def _add_input(p: argparse.ArgumentParser) -> None:
    src_group = p.add_mutually_exclusive_group(required=True)
    src_group.add_argument("--text", help="직접 입력 텍스트")
    src_group.add_argument("--input", help="입력 텍스트 파일 경로")


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="sprigc", description="sprig grammar compiler CLI")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_check = sub.add_parser("check", help="문법을 컴파일하고 요약을 출력합니다")
    _add_common(p_check)
    p_check.add_argument("--start", action="append", help="시작 규칙 (여러 번 지정 가능)")
    p_check.set_defaults(func=cmd_check)

    p_lex = sub.add_parser("lex", help="문법을 이용해 입력 텍스트를 토크나이즈합니다")
    _add_common(p_lex)
    _add_input(p_lex)
    p_lex.set_defaults(func=cmd_lex)

    p_parse = sub.add_parser("parse", help="입력 텍스트를 파싱해 트리를 출력합니다")
    _add_common(p_parse)
    _add_input(p_parse)
    p_parse.add_argument("--start", help="시작 규칙")
    p_parse.add_argument("--keep-all-tokens", action="store_true", help="걸러지는 토큰도 트리에 남김")
    p_parse.add_argument("--placeholders", action="store_true", help="[item] 부재 자리에 None 유지")
    p_parse.set_defaults(func=cmd_parse)

    args = ap.parse_args(argv)
    _setup_logging(args.debug)
    return int(args.func(args))

if __name__ == "__main__":
    sys.exit(main())
