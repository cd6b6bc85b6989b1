"""Domain enumerations for the data checker."""
from __future__ import annotations

from enum import Enum


class StrategyName(str, Enum):
    """Extraction strategies, cheapest first."""
    API = "api"
    STATIC_HTML = "static-html"
    HEADLESS_BROWSER = "headless-browser"


DEFAULT_STRATEGY_ORDER: tuple[StrategyName, ...] = (
    StrategyName.API,
    StrategyName.STATIC_HTML,
    StrategyName.HEADLESS_BROWSER,
)

# Terminal strategy tags for results that no strategy produced
STRATEGY_SKIPPED_DISABLED = "skipped: disabled"
STRATEGY_NONE = "none"

UNKNOWN_SOURCE = "unknown"


class FieldStatus(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    MISSING = "missing"


class VariantStatus(str, Enum):
    MATCH = "match"
    PARTIAL = "partial"
    MISSING = "missing"
