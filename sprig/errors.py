# sprig/errors.py
"""sprig 예외 계층.

- 문법 컴파일 단계: GrammarError 하위 클래스 (컴파일 즉시 중단)
- 파싱 단계: ParseError 하위 클래스 (해당 parse 호출만 중단, 파서는 재사용 가능)
"""

from __future__ import annotations
from typing import AbstractSet, Iterable, Optional, Tuple


class SprigError(Exception):
    """sprig에서 발생하는 모든 예외의 최상위 클래스."""


class ConfigurationError(SprigError, ValueError):
    """잘못된 옵션 조합(예: deterministic + standard lexer)."""


# ---------- error handling utils ----------
def _line_bounds(src: str, pos: int) -> Tuple[int, int]:
    """pos가 속한 라인의 [시작, 끝) 범위"""
    start = src.rfind("\n", 0, pos)
    start = 0 if start < 0 else start + 1
    end = src.find("\n", pos)
    end = len(src) if end < 0 else end
    return start, end


def caret_snippet(src: str, pos: int) -> str:
    """절대 오프셋 pos에 캐럿(^)을 찍은 한 줄짜리 스니펫."""
    pos = max(0, min(pos, len(src)))
    start, end = _line_bounds(src, pos)
    line_text = src[start:end]
    caret = " " * (pos - start) + "^"
    return f"{line_text}\n{caret}"


# ============================================================================
# 컴파일 단계
# ============================================================================

class GrammarError(SprigError):
    """
    문법 컴파일 오류의 공통 부모.

    Attributes
    ----------
    symbol : 문제가 된 규칙/단말/템플릿 이름(알 수 없으면 None)
    line, column : 선언 위치(1-based, 알 수 없으면 None)
    """

    def __init__(self, message: str, symbol: Optional[str] = None,
                 line: Optional[int] = None, column: Optional[int] = None):
        if line is not None:
            message = f"{message} (at {line}:{column})"
        super().__init__(message)
        self.symbol = symbol
        self.line = line
        self.column = column


class GrammarSyntaxError(GrammarError):
    """문법 텍스트 자체의 구문 오류. 메시지 끝에 캐럿 스니펫이 붙는다."""

    def __init__(self, message: str, line: int, column: int, snippet: str = ""):
        text = f"{message} at {line}:{column}"
        if snippet:
            text = f"{text}\n{snippet}"
        SprigError.__init__(self, text)
        self.symbol = None
        self.line = line
        self.column = column


class UndefinedTemplate(GrammarError):
    pass


class ArityMismatch(GrammarError):
    pass


class TemplateRecursionError(GrammarError):
    pass


class NameCollision(GrammarError):
    pass


class IncompatibleFlags(GrammarError):
    pass


class TerminalRecursionError(GrammarError):
    pass


class ZeroWidthTerminalError(GrammarError):
    pass


class UnknownStartRule(GrammarError):
    pass


class UndefinedSymbolReference(GrammarError):
    pass


class UnresolvedImport(GrammarError):
    pass


class GrammarConflict(GrammarError):
    """
    LALR(1) 테이블 충돌.

    Attributes
    ----------
    state      : 충돌이 난 상태 번호
    lookahead  : 충돌 lookahead 단말 이름
    productions: 충돌한 프로덕션들의 문자열 표현
    """

    def __init__(self, state: int, lookahead: str, kinds: Tuple[str, str],
                 productions: Iterable[str]):
        self.state = state
        self.lookahead = lookahead
        self.kinds = kinds
        self.productions = tuple(productions)
        detail = "\n".join(f"  - {p}" for p in self.productions)
        super().__init__(
            f"{kinds[0]}/{kinds[1]} conflict in state {state} on {lookahead}:\n{detail}",
            symbol=lookahead,
        )


# ============================================================================
# 파싱 단계
# ============================================================================

class ParseError(SprigError):
    """
    입력 파싱 오류의 공통 부모.

    Attributes
    ----------
    pos      : 0-based 오프셋
    line, column : 1-based 위치
    expected : 그 위치에서 허용되던 단말 이름 집합
    """

    pos: int = 0
    line: int = 1
    column: int = 1
    expected: AbstractSet[str] = frozenset()

    def get_context(self, text: str) -> str:
        """입력 원문에서 오류 위치를 캐럿으로 표시한 스니펫."""
        return caret_snippet(text, self.pos)

    def _expected_str(self) -> str:
        return ", ".join(sorted(self.expected)) if self.expected else "(nothing)"


class NoMatchingTerminal(ParseError):
    def __init__(self, char: str, pos: int, line: int, column: int,
                 allowed: AbstractSet[str]):
        self.char = char
        self.pos = pos
        self.line = line
        self.column = column
        self.expected = frozenset(allowed)
        super().__init__(
            f"No terminal matches {char!r} at {line}:{column}; "
            f"expected one of {{{self._expected_str()}}}"
        )


class LexerExhaustionError(ParseError):
    def __init__(self, terminal: str, pos: int, line: int, column: int):
        self.terminal = terminal
        self.pos = pos
        self.line = line
        self.column = column
        super().__init__(
            f"Lexer cannot make progress: terminal {terminal} matched an empty "
            f"string at {line}:{column}"
        )


class UnexpectedToken(ParseError):
    def __init__(self, token, expected: AbstractSet[str], state: Optional[int] = None):
        self.token = token
        self.pos = token.start_pos
        self.line = token.line
        self.column = token.column
        self.expected = frozenset(expected)
        self.state = state
        super().__init__(
            f"Unexpected token {token.type} {token.value!r} at {token.line}:{token.column}; "
            f"expected one of {{{self._expected_str()}}}"
        )


class UnexpectedEndOfInput(ParseError):
    def __init__(self, expected: AbstractSet[str], pos: int, line: int, column: int):
        self.pos = pos
        self.line = line
        self.column = column
        self.expected = frozenset(expected)
        super().__init__(
            f"Unexpected end of input at {line}:{column}; "
            f"expected one of {{{self._expected_str()}}}"
        )


class NoParseFound(ParseError):
    def __init__(self, message: str, expected: AbstractSet[str], pos: int,
                 line: int, column: int, token=None):
        self.pos = pos
        self.line = line
        self.column = column
        self.expected = frozenset(expected)
        self.token = token
        super().__init__(f"{message} at {line}:{column}; expected one of {{{self._expected_str()}}}")
