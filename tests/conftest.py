"""Shared fixtures: fast verifier settings, temporary profile store, fake strategies and browser."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.models.domain import ExtractionResult, ScrapedPayload
from shared.models.enums import StrategyName

from verifier.config import VerifierSettings
from verifier.profiles import SiteProfileStore
from verifier.strategies.base import ExtractionStrategy, ExtractionTarget, Hit, Miss, StrategyOutcome

LISTING_HTML = """
<html>
  <head><title>Tesla Model 3</title><style>.x { color: red }</style><script>var tracking = 1;</script></head>
  <body>
    <nav>Menu Home Cars</nav>
    <header>Site Header</header>
    <h1 class="title"> Tesla Model 3 </h1>
    <div class="price">AED 189,900</div>
    <table class="specs">
      <tr><td>Battery Size</td><td>60 kWh</td></tr>
      <tr><td>Range</td><td>513 km</td></tr>
      <tr><td>Same</td><td>Same</td></tr>
      <tr><td></td><td>orphan</td></tr>
    </table>
    <ul class="trims"><li> Standard Range </li><li>Long Range</li><li>   </li></ul>
    <footer>Copyright Example Cars</footer>
  </body>
</html>
"""

LISTING_SELECTORS = {
    "title": "h1.title",
    "price": ".price",
    "specsTable": "table.specs tr",
    "variants": "ul.trims li",
}


class FakeStrategy(ExtractionStrategy):
    """Records every call and returns a preset outcome (or raises `error`)."""

    def __init__(self, name: StrategyName, outcome: Optional[StrategyOutcome] = None) -> None:
        self._name = name
        self.outcome: StrategyOutcome = outcome or Miss("not configured")
        self.error: Optional[Exception] = None
        self.calls: list[ExtractionTarget] = []

    @property
    def name(self) -> StrategyName:
        return self._name

    async def extract(self, target: ExtractionTarget) -> StrategyOutcome:
        self.calls.append(target)
        if self.error is not None:
            raise self.error
        return self.outcome


def hit(source: str, url: str, strategy: StrategyName, **data: Any) -> Hit:
    payload = ScrapedPayload(**(data or {"title": "Tesla Model 3"}))
    return Hit(ExtractionResult(source=source, url=url, data=payload, strategy=strategy.value))


@pytest.fixture
def verifier_settings() -> VerifierSettings:
    """Default limits, pinned retry base, no settle wait."""
    return VerifierSettings(
        static_retry_base_delay_s=2.0,
        browser_settle_s=0.0,
    )


@pytest.fixture
def sites_dir(tmp_path: Path) -> Path:
    d = tmp_path / "sites"
    d.mkdir()
    return d


@pytest.fixture
def write_profile(sites_dir: Path) -> Callable[[str, dict[str, Any]], Path]:
    def _write(key: str, doc: dict[str, Any]) -> Path:
        path = sites_dir / f"{key}.json"
        path.write_text(json.dumps(doc), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def store(sites_dir: Path) -> SiteProfileStore:
    return SiteProfileStore(sites_dir)


@pytest.fixture
def fake_strategies() -> dict[StrategyName, FakeStrategy]:
    return {name: FakeStrategy(name) for name in StrategyName}


@pytest.fixture
def fake_browser() -> tuple[MagicMock, MagicMock, MagicMock]:
    """(browser, context, page) mocks shaped like the Playwright async API."""
    page = MagicMock()
    page.set_extra_http_headers = AsyncMock()
    page.goto = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.content = AsyncMock(return_value=LISTING_HTML)

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.is_connected = MagicMock(return_value=True)
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    return browser, context, page
