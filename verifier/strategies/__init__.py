from verifier.strategies.api import ApiStrategy
from verifier.strategies.base import ExtractionStrategy, ExtractionTarget, Hit, Miss, StrategyOutcome
from verifier.strategies.browser import HeadlessBrowserStrategy
from verifier.strategies.static_html import StaticHtmlStrategy

__all__ = [
    "ApiStrategy",
    "ExtractionStrategy",
    "ExtractionTarget",
    "HeadlessBrowserStrategy",
    "Hit",
    "Miss",
    "StaticHtmlStrategy",
    "StrategyOutcome",
]
