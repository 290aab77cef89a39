# sprig/compiler.py
"""문법 텍스트 → 재사용 가능한 Parser.

파이프라인
---------
    parse_grammar → resolve_imports → expand_templates → to_grammar (desugar + terminals)
    → Lexer → (LALRParser | ChartParser) + TreeBuilder
"""

from __future__ import annotations
import logging
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple

from .builder import TreeBuilder
from .chart import ChartParser
from .config import ParserConfig
from .engine import ParserEngine
from .grammar.loader import ImportResolver, resolve_imports
from .grammar.model import Grammar
from .grammar.parser import parse_grammar
from .grammar.templates import expand_templates
from .grammar.transform import to_grammar
from .lalr.runtime import LALRParser
from .lex import Lexer, Token
from .tree import Tree

logger = logging.getLogger(__name__)

# (grammar text, options) → Parser. 쓰기는 새 dict를 만들어 한 번에 교체한다 (copy-on-write).
_CACHE: Dict[Tuple[str, Tuple], "Parser"] = {}


def build_grammar(text: str, start: Sequence[str] = ("start",),
                  import_resolver: Optional[ImportResolver] = None,
                  debug: bool = False) -> Grammar:
    """문법 텍스트를 Grammar Model로 컴파일한다 (파서 엔진은 만들지 않음)."""
    g = parse_grammar(text)
    if debug:
        logger.debug("grammar parsed: %d rules, %d terminals, %d directives",
                     len(g.rules), len(g.terminals),
                     len(g.ignores) + len(g.imports) + len(g.declares))
    g = resolve_imports(g, import_resolver)
    g = expand_templates(g)
    if debug:
        logger.debug("imports resolved and templates expanded: %d rules, %d terminals",
                     len(g.rules), len(g.terminals))
    return to_grammar(g, start)


class Parser:
    """
    Parser
    ======
    컴파일된 문법 + 렉서 + 파서 엔진 묶음. 불변이며 여러 스레드에서 동시에 parse 해도 된다.
    """

    def __init__(self, grammar: Grammar, config: ParserConfig, lexer: Lexer, engine: ParserEngine):
        self._grammar = grammar
        self.config = config
        self.lexer = lexer
        self.engine = engine

    @property
    def grammar(self) -> Grammar:
        return self._grammar

    def parse(self, text: str, start: Optional[str] = None) -> Tree:
        return self.engine.parse(text, start)

    def lex(self, text: str) -> Iterator[Token]:
        """standard 모드 토크나이즈 (디버깅/CLI용)"""
        return self.lexer.tokenize(text)

    def __repr__(self) -> str:
        return (f"Parser(algorithm={self.config.algorithm!r}, lexer={self.config.lexer_mode!r}, "
                f"start={self.config.start!r}, productions={len(self._grammar)})")


def compile_grammar(text: str, config: Optional[ParserConfig] = None, **options: Any) -> Parser:
    """
    문법 텍스트를 컴파일해 Parser를 돌려준다.

    Parameters
    ----------
    text : str
        문법 원문.
    config : ParserConfig | None
        옵션 묶음. 주어지지 않으면 **options 로 만든다.
    **options
        ParserConfig 필드 (start, algorithm, lexer, maybe_placeholders, keep_all_tokens,
        import_resolver, debug, cache). config와 함께 주면 config 위에 덮어쓴다.

    Raises
    ------
    GrammarError
        문법 컴파일 실패 (하위 클래스로 원인 구분).
    ConfigurationError
        잘못된 옵션.
    """
    global _CACHE
    if config is None:
        config = ParserConfig.from_dict(options)
    elif options:
        config = config.with_options(**options)

    key = (text, config.cache_key())
    if config.cache:
        hit = _CACHE.get(key)
        if hit is not None:
            if config.debug:
                logger.debug("parser cache hit")
            return hit

    grammar = build_grammar(text, config.starts, config.import_resolver, debug=config.debug)
    lexer = Lexer(grammar)
    builder = TreeBuilder(maybe_placeholders=config.maybe_placeholders,
                          keep_all_tokens=config.keep_all_tokens)
    if config.algorithm == "deterministic":
        engine: ParserEngine = LALRParser(grammar, lexer, builder)
    else:
        engine = ChartParser(grammar, lexer, builder, contextual=config.lexer_mode == "contextual")
    parser = Parser(grammar, config, lexer, engine)
    if config.debug:
        logger.debug("compiled %r", parser)

    if config.cache:
        published = dict(_CACHE)
        published[key] = parser
        _CACHE = published
    return parser


def parse(parser: Parser, text: str, start: Optional[str] = None) -> Tree:
    """parser.parse(text, start)의 함수형 표기."""
    return parser.parse(text, start)


def clear_cache() -> None:
    global _CACHE
    _CACHE = {}
