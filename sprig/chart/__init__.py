from .engine import ChartParser, nullable_rules

__all__ = ["ChartParser", "nullable_rules"]
