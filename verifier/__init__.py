"""
Data checker verifier.
Extracts listing data from third-party sources through an API / static HTML /
headless browser waterfall, and reconciles it against authoritative records.
"""
from verifier.engine import ExtractionOrchestrator
from verifier.reconciliation import compare_record

__all__ = [
    "ExtractionOrchestrator",
    "compare_record",
]
