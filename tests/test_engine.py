"""
Unit tests for the extraction orchestrator and the shared browser manager.

Run: pytest tests/test_engine.py -v
"""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from playwright.async_api import Error as PlaywrightError

from shared.models.enums import StrategyName
from verifier.browser import BrowserManager, BrowserState, BrowserUnavailable
from verifier.config import VerifierSettings
from verifier.engine import ExtractionOrchestrator
from verifier.profiles import SiteProfile, SiteProfileStore
from verifier.strategies.api import ApiStrategy
from verifier.strategies.base import Hit, Miss
from verifier.strategies.browser import HeadlessBrowserStrategy
from verifier.strategies.static_html import StaticHtmlStrategy

from conftest import LISTING_SELECTORS, FakeStrategy, hit

API, STATIC, BROWSER = StrategyName.API, StrategyName.STATIC_HTML, StrategyName.HEADLESS_BROWSER

URL = "https://www.cars.test/tesla/model-3"


def _orchestrator(
    store: SiteProfileStore,
    settings: VerifierSettings,
    strategies: dict[StrategyName, FakeStrategy],
) -> ExtractionOrchestrator:
    manager = BrowserManager(settings, launcher=AsyncMock())
    return ExtractionOrchestrator(store, settings, browser=manager, strategies=strategies)


# ── BrowserManager ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_browser_launches_lazily_and_is_reused(verifier_settings: VerifierSettings, fake_browser) -> None:
    browser, _, _ = fake_browser
    launcher = AsyncMock(return_value=browser)
    manager = BrowserManager(verifier_settings, launcher=launcher)
    assert manager.state == BrowserState.UNSTARTED
    launcher.assert_not_awaited()

    assert await manager.get_browser() is browser
    assert await manager.get_browser() is browser
    assert manager.state == BrowserState.RUNNING
    assert manager.launch_count == 1


@pytest.mark.asyncio
async def test_browser_relaunches_when_disconnected(verifier_settings: VerifierSettings) -> None:
    first, second = MagicMock(), MagicMock()
    first.is_connected = MagicMock(return_value=True)
    second.is_connected = MagicMock(return_value=True)
    manager = BrowserManager(verifier_settings, launcher=AsyncMock(side_effect=[first, second]))

    assert await manager.get_browser() is first
    first.is_connected.return_value = False
    assert await manager.get_browser() is second
    assert manager.launch_count == 2


@pytest.mark.asyncio
async def test_concurrent_first_use_launches_once(verifier_settings: VerifierSettings, fake_browser) -> None:
    browser, _, _ = fake_browser
    launches = 0

    async def slow_launch() -> MagicMock:
        nonlocal launches
        launches += 1
        await asyncio.sleep(0.01)
        return browser

    manager = BrowserManager(verifier_settings, launcher=slow_launch)
    results = await asyncio.gather(*(manager.get_browser() for _ in range(5)))

    assert all(b is browser for b in results)
    assert launches == 1


@pytest.mark.asyncio
async def test_browser_shutdown_is_final_and_idempotent(verifier_settings: VerifierSettings, fake_browser) -> None:
    browser, _, _ = fake_browser
    manager = BrowserManager(verifier_settings, launcher=AsyncMock(return_value=browser))
    await manager.get_browser()

    await manager.shutdown()
    await manager.shutdown()

    browser.close.assert_awaited_once()
    assert manager.state == BrowserState.STOPPED
    with pytest.raises(BrowserUnavailable):
        await manager.get_browser()


@pytest.mark.asyncio
async def test_browser_shutdown_survives_playwright_stop_failure(verifier_settings: VerifierSettings, fake_browser, monkeypatch) -> None:
    browser, _, _ = fake_browser
    browser.close.side_effect = PlaywrightError("Target closed")
    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock(side_effect=PlaywrightError("Connection closed"))
    starter = MagicMock()
    starter.start = AsyncMock(return_value=playwright)
    monkeypatch.setattr("verifier.browser.async_playwright", lambda: starter)

    manager = BrowserManager(verifier_settings)
    assert await manager.get_browser() is browser
    playwright.chromium.launch.assert_awaited_once_with(
        headless=verifier_settings.browser_headless, args=list(verifier_settings.browser_args)
    )

    await manager.shutdown()

    playwright.stop.assert_awaited_once()
    assert manager.state == BrowserState.STOPPED
    await manager.shutdown()
    playwright.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_browser_shutdown_before_start(verifier_settings: VerifierSettings) -> None:
    launcher = AsyncMock()
    manager = BrowserManager(verifier_settings, launcher=launcher)
    await manager.shutdown()
    assert manager.state == BrowserState.STOPPED
    launcher.assert_not_awaited()


# ── Source resolution and ordering ──────────────────────────────────────

def test_strategy_order_preferred_first() -> None:
    profile = SiteProfile(base_url="https://cars.test", preferred_strategy=STATIC)
    assert ExtractionOrchestrator.strategy_order(profile) == [STATIC, API, BROWSER]


@pytest.mark.parametrize(
    "preferred, expected",
    [
        (None, [API, STATIC, BROWSER]),
        (API, [API, STATIC, BROWSER]),
        (BROWSER, [BROWSER, API, STATIC]),
    ],
)
def test_strategy_order_each_strategy_once(preferred, expected) -> None:
    profile = SiteProfile(base_url="https://cars.test", preferred_strategy=preferred)
    order = ExtractionOrchestrator.strategy_order(profile)
    assert order == expected
    assert sorted(order) == sorted(StrategyName)


def test_strategy_order_without_profile() -> None:
    assert ExtractionOrchestrator.strategy_order(None) == [API, STATIC, BROWSER]


def test_resolve_source() -> None:
    profiles = {"cars": SiteProfile(key="cars", base_url="https://cars.test")}
    assert ExtractionOrchestrator.resolve_source(URL, None, profiles) == ("cars", profiles["cars"])
    assert ExtractionOrchestrator.resolve_source(URL, "other", profiles) == ("other", None)
    assert ExtractionOrchestrator.resolve_source("https://elsewhere.test/x", None, profiles) == ("unknown", None)


def test_orchestrator_requires_every_handler(store: SiteProfileStore, verifier_settings: VerifierSettings) -> None:
    with pytest.raises(ValueError):
        ExtractionOrchestrator(store, verifier_settings, strategies={API: FakeStrategy(API)})


# ── Waterfall ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_first_hit_wins(write_profile, store, verifier_settings, fake_strategies) -> None:
    write_profile("cars", {"baseUrl": "https://cars.test", "preferredStrategy": "static-html"})
    fake_strategies[STATIC].outcome = hit("cars", URL, STATIC, price="AED 189,900")
    orchestrator = _orchestrator(store, verifier_settings, fake_strategies)

    result = await orchestrator.extract(URL)

    assert result.strategy == "static-html"
    assert result.source == "cars"
    assert result.data.price == "AED 189,900"
    assert result.attempted == ["static-html"]
    assert fake_strategies[BROWSER].calls == []


@pytest.mark.asyncio
async def test_fallthrough_to_browser(write_profile, store, verifier_settings, fake_strategies) -> None:
    write_profile("cars", {"baseUrl": "https://cars.test"})
    fake_strategies[STATIC].outcome = Miss("fetch failed after retries")
    fake_strategies[BROWSER].outcome = hit("cars", URL, BROWSER)
    orchestrator = _orchestrator(store, verifier_settings, fake_strategies)

    result = await orchestrator.extract(URL, brand="Tesla", model="Model 3")

    assert result.strategy == "headless-browser"
    assert result.attempted == ["api", "static-html", "headless-browser"]
    assert result.attempted.index("headless-browser") == 2
    assert result.misses == {
        "api": "skipped: no api descriptor",
        "static-html": "fetch failed after retries",
    }
    assert fake_strategies[API].calls == []
    assert len(fake_strategies[STATIC].calls) == 1


@pytest.mark.asyncio
async def test_fallthrough_with_real_static_strategy(write_profile, store, verifier_settings, fake_browser) -> None:
    """No API descriptor, every static attempt answers 500, the rendered page succeeds."""
    write_profile("cars", {"baseUrl": "https://cars.test", "selectors": LISTING_SELECTORS})
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(500)

    async def no_sleep(delay: float) -> None:
        pass

    transport = httpx.MockTransport(handler)
    browser, context, _ = fake_browser
    manager = BrowserManager(verifier_settings, launcher=AsyncMock(return_value=browser))
    orchestrator = ExtractionOrchestrator(
        store,
        verifier_settings,
        browser=manager,
        strategies={
            API: ApiStrategy(verifier_settings, transport=transport),
            STATIC: StaticHtmlStrategy(verifier_settings, transport=transport, sleep=no_sleep),
            BROWSER: HeadlessBrowserStrategy(manager, verifier_settings),
        },
    )

    result = await orchestrator.extract(URL, brand="Tesla", model="Model 3")

    assert result.strategy == "headless-browser"
    assert result.attempted == ["api", "static-html", "headless-browser"]
    assert result.data.title == "Tesla Model 3"
    assert len(requests) == 3
    context.close.assert_awaited_once()

    await orchestrator.close()
    browser.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_disabled_profile_makes_no_calls(write_profile, store, verifier_settings, fake_browser) -> None:
    write_profile(
        "cars",
        {
            "baseUrl": "https://cars.test",
            "disabled": True,
            "disabledReason": "bot wall",
            "api": {"endpoint": "https://api.cars.test", "searchPath": "/s?b={brand}&m={model}"},
        },
    )
    requests: list[httpx.Request] = []
    transport = httpx.MockTransport(lambda request: requests.append(request) or httpx.Response(200, text="x"))
    browser, _, _ = fake_browser
    launcher = AsyncMock(return_value=browser)
    manager = BrowserManager(verifier_settings, launcher=launcher)
    orchestrator = ExtractionOrchestrator(
        store,
        verifier_settings,
        browser=manager,
        strategies={
            API: ApiStrategy(verifier_settings, transport=transport),
            STATIC: StaticHtmlStrategy(verifier_settings, transport=transport),
            BROWSER: HeadlessBrowserStrategy(manager, verifier_settings),
        },
    )

    result = await orchestrator.extract(URL, brand="Tesla", model="Model 3")

    assert result.strategy == "skipped: disabled"
    assert result.data.is_empty
    assert result.raw_text == ""
    assert result.attempted == []
    assert requests == []
    launcher.assert_not_awaited()


@pytest.mark.asyncio
async def test_api_runs_only_with_descriptor_and_hints(write_profile, store, verifier_settings, fake_strategies) -> None:
    write_profile("cars", {"baseUrl": "https://cars.test", "api": {"endpoint": "https://api.cars.test"}})
    fake_strategies[API].outcome = hit("cars", URL, API)
    orchestrator = _orchestrator(store, verifier_settings, fake_strategies)

    fake_strategies[STATIC].outcome = hit("cars", URL, STATIC)
    without_model = await orchestrator.extract(URL, brand="Tesla")
    assert without_model.strategy == "static-html"
    assert without_model.misses["api"].startswith("skipped")
    assert fake_strategies[API].calls == []

    with_hints = await orchestrator.extract(URL, brand="Tesla", model="Model 3")
    assert with_hints.strategy == "api"
    assert len(fake_strategies[API].calls) == 1
    assert fake_strategies[API].calls[0].model == "Model 3"


@pytest.mark.asyncio
async def test_all_strategies_miss(store, verifier_settings, fake_strategies) -> None:
    orchestrator = _orchestrator(store, verifier_settings, fake_strategies)

    result = await orchestrator.extract("https://unlisted.test/page")

    assert result.source == "unknown"
    assert result.strategy == "none"
    assert result.data.is_empty
    assert result.attempted == ["api", "static-html", "headless-browser"]
    assert set(result.misses) == {"api", "static-html", "headless-browser"}
    assert len(fake_strategies[STATIC].calls) == 1
    assert fake_strategies[STATIC].calls[0].profile is None


@pytest.mark.asyncio
async def test_unexpected_strategy_error_is_a_miss(write_profile, store, verifier_settings, fake_strategies) -> None:
    write_profile("cars", {"baseUrl": "https://cars.test"})
    fake_strategies[STATIC].error = RuntimeError("boom")
    fake_strategies[BROWSER].outcome = hit("cars", URL, BROWSER)
    orchestrator = _orchestrator(store, verifier_settings, fake_strategies)

    result = await orchestrator.extract(URL)

    assert result.strategy == "headless-browser"
    assert "boom" in result.misses["static-html"]


@pytest.mark.asyncio
async def test_empty_hit_is_treated_as_miss(write_profile, store, verifier_settings, fake_strategies) -> None:
    write_profile("cars", {"baseUrl": "https://cars.test"})
    empty = hit("cars", URL, STATIC, title="")
    assert isinstance(empty, Hit)
    fake_strategies[STATIC].outcome = empty
    orchestrator = _orchestrator(store, verifier_settings, fake_strategies)

    result = await orchestrator.extract(URL)

    assert result.strategy == "none"
    assert result.misses["static-html"] == "empty result"


@pytest.mark.asyncio
async def test_explicit_source_key_wins(write_profile, store, verifier_settings, fake_strategies) -> None:
    write_profile("cars", {"baseUrl": "https://cars.test"})
    write_profile("mirror", {"baseUrl": "https://mirror.test", "preferredStrategy": "headless-browser"})
    fake_strategies[BROWSER].outcome = hit("mirror", URL, BROWSER)
    orchestrator = _orchestrator(store, verifier_settings, fake_strategies)

    result = await orchestrator.extract(URL, source_key="mirror")

    assert result.source == "mirror"
    assert result.attempted == ["headless-browser"]
    assert fake_strategies[BROWSER].calls[0].profile.key == "mirror"


@pytest.mark.asyncio
async def test_malformed_profile_falls_back_to_no_profile(sites_dir, store, verifier_settings, fake_strategies) -> None:
    (sites_dir / "cars.json").write_text("{broken", encoding="utf-8")
    fake_strategies[STATIC].outcome = hit("cars", URL, STATIC)
    orchestrator = _orchestrator(store, verifier_settings, fake_strategies)

    result = await orchestrator.extract(URL, source_key="cars")

    assert result.source == "cars"
    assert result.strategy == "static-html"
    assert fake_strategies[STATIC].calls[0].profile is None
