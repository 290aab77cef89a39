# sprig/lalr/__init__.py
"""결정적 파서: LR(1) 항목 집합 → LALR(1) 병합 테이블 + 테이블 구동 런타임."""

from .items import build_lalr_tables
from .runtime import LALRParser
from .table import Tables
