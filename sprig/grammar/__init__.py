# sprig/grammar/__init__.py
"""문법 프론트엔드: 문법 텍스트 파싱, %import 해석, 템플릿 전개, 정규화(desugar), 단말 컴파일."""

from .loader import builtin_resolver, load_grammar_text, resolve_imports
from .model import Grammar, Production, RuleOptions, Symbol
from .parser import parse_grammar
from .templates import expand_templates
from .terminals import PatternRE, PatternStr, TerminalDef
from .transform import to_grammar
