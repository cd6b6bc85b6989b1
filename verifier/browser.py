"""
Process-wide headless browser engine.

One Chromium instance is shared by every headless extraction:
launched on first use, reused while connected, relaunched if it disconnects,
and closed exactly once at shutdown. Launch and shutdown are serialized by a
lock so concurrent first calls cannot start two engines.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from shared.utils.logging import get_logger
from shared.utils.metrics import BROWSER_LAUNCHES

from verifier.config import VerifierSettings, get_verifier_settings

logger = get_logger(__name__)

Launcher = Callable[[], Awaitable[Any]]


class BrowserState(str, Enum):
    UNSTARTED = "unstarted"
    RUNNING = "running"
    STOPPED = "stopped"


class BrowserUnavailable(RuntimeError):
    """Raised when a browser is requested after shutdown."""


class BrowserManager:
    """
    Owns the shared browser engine.

    `launcher` replaces the Playwright launch (tests pass a coroutine that
    returns a fake browser); it must return an object with `is_connected()`,
    `new_context(**kwargs)` and `close()`.
    """

    def __init__(
        self,
        settings: Optional[VerifierSettings] = None,
        launcher: Optional[Launcher] = None,
    ) -> None:
        self._settings = settings or get_verifier_settings()
        self._launcher = launcher
        self._lock = asyncio.Lock()
        self._state = BrowserState.UNSTARTED
        self._browser: Optional[Browser] = None
        self._playwright: Optional[Playwright] = None
        self._launches = 0

    @property
    def state(self) -> BrowserState:
        return self._state

    @property
    def launch_count(self) -> int:
        return self._launches

    async def _launch(self) -> Browser:
        if self._launcher is not None:
            return await self._launcher()
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(
            headless=self._settings.browser_headless,
            args=list(self._settings.browser_args),
        )

    async def get_browser(self) -> Browser:
        """Running browser, launching or relaunching it as needed."""
        async with self._lock:
            if self._state == BrowserState.STOPPED:
                raise BrowserUnavailable("browser manager has been shut down")
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            if self._browser is not None:
                logger.warning("browser_disconnected_relaunching", launches=self._launches)
            self._browser = await self._launch()
            self._launches += 1
            self._state = BrowserState.RUNNING
            BROWSER_LAUNCHES.inc()
            logger.info("browser_launched", launches=self._launches)
            return self._browser

    async def shutdown(self) -> None:
        """Close the engine. Idempotent; later get_browser() calls fail."""
        async with self._lock:
            if self._state == BrowserState.STOPPED:
                return
            self._state = BrowserState.STOPPED
            browser, self._browser = self._browser, None
            if browser is not None and browser.is_connected():
                try:
                    await browser.close()
                except PlaywrightError as e:
                    logger.warning("browser_close_error", error=str(e))
            playwright, self._playwright = self._playwright, None
            if playwright is not None:
                try:
                    await playwright.stop()
                except PlaywrightError as e:
                    logger.warning("playwright_stop_error", error=str(e))
            logger.info("browser_stopped", launches=self._launches)
