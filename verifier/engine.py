"""
Extraction orchestrator.

Resolves a target to a source and site profile, orders the strategies and
walks them cheapest-first until one hits:

    api -> static-html -> headless-browser

A disabled profile short-circuits before any network activity. Strategies run
strictly one after another; a miss moves on to the next, and exhausting all of
them yields an empty result tagged "none".
"""
from __future__ import annotations

from typing import Mapping, Optional

from shared.models.domain import ExtractionResult
from shared.models.enums import (
    DEFAULT_STRATEGY_ORDER,
    STRATEGY_NONE,
    STRATEGY_SKIPPED_DISABLED,
    UNKNOWN_SOURCE,
    StrategyName,
)
from shared.utils.logging import extraction_context, get_logger
from shared.utils.metrics import EXTRACTIONS, STRATEGY_ATTEMPTS, STRATEGY_LATENCY, atrack_latency

from verifier.browser import BrowserManager
from verifier.config import VerifierSettings, get_verifier_settings
from verifier.profiles import SiteProfile, SiteProfileStore, detect_source_key
from verifier.strategies.api import ApiStrategy
from verifier.strategies.base import ExtractionStrategy, ExtractionTarget, Hit, Miss, StrategyOutcome
from verifier.strategies.browser import HeadlessBrowserStrategy
from verifier.strategies.static_html import StaticHtmlStrategy

logger = get_logger(__name__)


class ExtractionOrchestrator:
    """Runs the extraction waterfall for one target per call."""

    def __init__(
        self,
        store: SiteProfileStore,
        settings: Optional[VerifierSettings] = None,
        browser: Optional[BrowserManager] = None,
        strategies: Optional[Mapping[StrategyName, ExtractionStrategy]] = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_verifier_settings()
        self._browser = browser or BrowserManager(self._settings)
        if strategies is None:
            strategies = {
                StrategyName.API: ApiStrategy(self._settings),
                StrategyName.STATIC_HTML: StaticHtmlStrategy(self._settings),
                StrategyName.HEADLESS_BROWSER: HeadlessBrowserStrategy(self._browser, self._settings),
            }
        missing = [s.value for s in StrategyName if s not in strategies]
        if missing:
            raise ValueError(f"no handler for strategies: {', '.join(missing)}")
        self._strategies = dict(strategies)

    @property
    def store(self) -> SiteProfileStore:
        return self._store

    @property
    def browser(self) -> BrowserManager:
        return self._browser

    @staticmethod
    def resolve_source(
        url: str,
        source_key: Optional[str],
        profiles: Mapping[str, SiteProfile],
    ) -> tuple[str, Optional[SiteProfile]]:
        """Explicit key wins, then host detection, then the "unknown" source with no profile."""
        if source_key:
            return source_key, profiles.get(source_key)
        detected = detect_source_key(url, dict(profiles))
        if detected is None:
            return UNKNOWN_SOURCE, None
        return detected, profiles[detected]

    @staticmethod
    def strategy_order(profile: Optional[SiteProfile]) -> list[StrategyName]:
        """Preferred strategy first, then the rest in default order, each once."""
        preferred = profile.preferred_strategy if profile else None
        if preferred is None:
            return list(DEFAULT_STRATEGY_ORDER)
        return [preferred] + [s for s in DEFAULT_STRATEGY_ORDER if s != preferred]

    @staticmethod
    def _api_gate(profile: Optional[SiteProfile], brand: Optional[str], model: Optional[str]) -> Optional[str]:
        if profile is None or profile.api is None:
            return "skipped: no api descriptor"
        if not brand or not model:
            return "skipped: brand and model hints required"
        return None

    def _load_profiles(self, source_key: Optional[str]) -> dict[str, SiteProfile]:
        if source_key:
            profile = self._store.load(source_key)
            return {source_key: profile} if profile is not None else {}
        return self._store.load_all()

    async def _run(self, name: StrategyName, target: ExtractionTarget) -> StrategyOutcome:
        strategy = self._strategies[name]
        try:
            async with atrack_latency(STRATEGY_LATENCY, strategy=name.value):
                outcome = await strategy.extract(target)
        except Exception as e:
            logger.exception("strategy_unexpected_error", strategy=name.value, url=target.url, error=str(e))
            return Miss(f"unexpected error: {e}")
        if isinstance(outcome, Hit) and not outcome.result.has_data:
            return Miss("empty result")
        return outcome

    async def extract(
        self,
        url: str,
        source_key: Optional[str] = None,
        brand: Optional[str] = None,
        model: Optional[str] = None,
    ) -> ExtractionResult:
        """Extract one target. Never raises; exhaustion returns an empty result."""
        profiles = self._load_profiles(source_key)
        source, profile = self.resolve_source(url, source_key, profiles)
        with extraction_context(source=source, url=url):
            return await self._walk(url, source, profile, brand, model)

    async def _walk(
        self,
        url: str,
        source: str,
        profile: Optional[SiteProfile],
        brand: Optional[str],
        model: Optional[str],
    ) -> ExtractionResult:
        if profile is not None and profile.disabled:
            logger.info("extraction_skipped_disabled", reason=profile.disabled_reason)
            EXTRACTIONS.labels(source=source, strategy=STRATEGY_SKIPPED_DISABLED).inc()
            return ExtractionResult.empty(source, url, STRATEGY_SKIPPED_DISABLED)

        if profile is None:
            logger.info("extraction_no_profile")

        target = ExtractionTarget(url=url, source=source, profile=profile, brand=brand, model=model)
        attempted: list[str] = []
        misses: dict[str, str] = {}

        for name in self.strategy_order(profile):
            attempted.append(name.value)
            if name == StrategyName.API:
                gate = self._api_gate(profile, brand, model)
                if gate is not None:
                    misses[name.value] = gate
                    STRATEGY_ATTEMPTS.labels(strategy=name.value, outcome="skipped").inc()
                    logger.debug("strategy_skipped", strategy=name.value, reason=gate)
                    continue

            outcome = await self._run(name, target)
            if isinstance(outcome, Hit):
                STRATEGY_ATTEMPTS.labels(strategy=name.value, outcome="hit").inc()
                EXTRACTIONS.labels(source=source, strategy=name.value).inc()
                logger.info("extraction_hit", strategy=name.value, attempted=attempted)
                return outcome.result.model_copy(
                    update={"source": source, "attempted": attempted, "misses": misses}
                )

            misses[name.value] = outcome.reason
            STRATEGY_ATTEMPTS.labels(strategy=name.value, outcome="miss").inc()
            logger.info("strategy_miss", strategy=name.value, reason=outcome.reason)

        EXTRACTIONS.labels(source=source, strategy=STRATEGY_NONE).inc()
        logger.warning("extraction_exhausted", attempted=attempted, misses=misses)
        return ExtractionResult.empty(source, url, STRATEGY_NONE, attempted=attempted, misses=misses)

    async def close(self) -> None:
        """Shut the shared browser down. Call once at process shutdown."""
        await self._browser.shutdown()
