# sprig/__init__.py
"""sprig: EBNF 문법을 읽어 파서를 만들어 주는 라이브러리.

사용 예)
    import sprig
    p = sprig.compile_grammar('start: "a" B\nB: "b"')
    tree = p.parse("ab")          # Tree('start', (Token('B', 'b', ...),))
"""

from .compiler import Parser, build_grammar, clear_cache, compile_grammar, parse
from .config import ParserConfig
from .errors import (
    ArityMismatch, ConfigurationError, GrammarConflict, GrammarError, GrammarSyntaxError,
    IncompatibleFlags, LexerExhaustionError, NameCollision, NoMatchingTerminal, NoParseFound,
    ParseError, SprigError, TemplateRecursionError, TerminalRecursionError, UndefinedSymbolReference,
    UndefinedTemplate, UnexpectedEndOfInput, UnexpectedToken, UnknownStartRule, UnresolvedImport,
    ZeroWidthTerminalError,
)
from .grammar.model import Grammar
from .lex import Token
from .tree import Tree

__version__ = "0.1.0"
