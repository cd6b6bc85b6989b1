"""
Dependency injection for the API service.
Provides the extraction orchestrator and settings to route handlers.
"""
from __future__ import annotations

from verifier.engine import ExtractionOrchestrator

# Module-level singleton, initialized at startup
_orchestrator: ExtractionOrchestrator | None = None


def init_dependencies(orchestrator: ExtractionOrchestrator | None) -> None:
    """Initialize module-level singletons. Called once at startup (None at shutdown)."""
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator() -> ExtractionOrchestrator:
    """FastAPI dependency: returns the shared ExtractionOrchestrator."""
    if _orchestrator is None:
        raise RuntimeError("ExtractionOrchestrator not initialized: call init_dependencies first")
    return _orchestrator
