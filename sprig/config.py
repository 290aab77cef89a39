# sprig/config.py
"""컴파일 옵션.

| option              | 기본값           |
|---------------------|------------------|
| start               | "start"          |
| algorithm           | "deterministic"  |
| lexer               | None → deterministic 이면 contextual, chart 이면 standard |
| maybe_placeholders  | False            |
| keep_all_tokens     | False            |
| import_resolver     | 내장 resolver (common 모듈) |
| debug               | False            |
| cache               | False            |
"""

from __future__ import annotations
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .errors import ConfigurationError
from .grammar.loader import ImportResolver, builtin_resolver

ALGORITHMS = ("deterministic", "chart")
LEXERS = ("standard", "contextual")


@dataclass(frozen=True)
class ParserConfig:
    start: Union[str, Sequence[str]] = "start"
    algorithm: str = "deterministic"
    lexer: Optional[str] = None
    maybe_placeholders: bool = False
    keep_all_tokens: bool = False
    import_resolver: ImportResolver = builtin_resolver
    debug: bool = False
    cache: bool = False

    def __post_init__(self):
        if self.algorithm not in ALGORITHMS:
            raise ConfigurationError(
                f"Unknown algorithm {self.algorithm!r} (expected one of {', '.join(ALGORITHMS)})")
        if self.lexer is not None and self.lexer not in LEXERS:
            raise ConfigurationError(
                f"Unknown lexer {self.lexer!r} (expected one of {', '.join(LEXERS)})")
        if self.algorithm == "deterministic" and self.lexer == "standard":
            raise ConfigurationError("The deterministic algorithm requires the contextual lexer")
        starts = (self.start,) if isinstance(self.start, str) else tuple(self.start)
        if not starts or not all(isinstance(s, str) and s for s in starts):
            raise ConfigurationError(f"Invalid start rule(s): {self.start!r}")
        object.__setattr__(self, "start", starts[0] if len(starts) == 1 else starts)
        if not callable(self.import_resolver):
            raise ConfigurationError("import_resolver must be callable")

    @property
    def starts(self) -> Tuple[str, ...]:
        return (self.start,) if isinstance(self.start, str) else tuple(self.start)

    @property
    def lexer_mode(self) -> str:
        if self.lexer is not None:
            return self.lexer
        return "contextual" if self.algorithm == "deterministic" else "standard"

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> "ParserConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"Unknown option(s): {', '.join(unknown)}")
        return cls(**options)

    def with_options(self, **options: Any) -> "ParserConfig":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"Unknown option(s): {', '.join(unknown)}")
        return replace(self, **options)

    def cache_key(self) -> Tuple:
        return (self.starts, self.algorithm, self.lexer_mode, self.maybe_placeholders,
                self.keep_all_tokens, self.import_resolver)
