"""
Headless browser strategy: render the page in an isolated browser context and
run the same selector extraction over the rendered DOM.
"""
from __future__ import annotations

from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError

from shared.models.domain import ExtractionResult
from shared.models.enums import StrategyName
from shared.utils.logging import get_logger

from verifier.browser import BrowserManager
from verifier.config import VerifierSettings, get_verifier_settings
from verifier.html_extract import is_sparse, parse_page
from verifier.profiles import SelectorDescriptor
from verifier.strategies.base import ExtractionStrategy, ExtractionTarget, Hit, Miss, StrategyOutcome

logger = get_logger(__name__)

NAVIGATION_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
}


class HeadlessBrowserStrategy(ExtractionStrategy):
    """Most expensive strategy; handles pages that only render client-side."""

    def __init__(
        self,
        manager: BrowserManager,
        settings: Optional[VerifierSettings] = None,
    ) -> None:
        self._manager = manager
        self._settings = settings or get_verifier_settings()

    @property
    def name(self) -> StrategyName:
        return StrategyName.HEADLESS_BROWSER

    async def _render(self, context: Any, target: ExtractionTarget) -> str:
        s = self._settings
        page = await context.new_page()
        await page.set_extra_http_headers(NAVIGATION_HEADERS)
        await page.goto(target.url, wait_until="domcontentloaded", timeout=s.browser_nav_timeout_s * 1000)
        await page.wait_for_timeout(s.browser_settle_s * 1000)

        selectors = self.descriptor(target)
        title_selector = selectors.title if isinstance(selectors, SelectorDescriptor) else None
        if title_selector and s.browser_selector_wait_s > 0:
            try:
                await page.wait_for_selector(title_selector, timeout=s.browser_selector_wait_s * 1000)
            except PlaywrightError:
                logger.debug("browser_title_wait_timeout", url=target.url, selector=title_selector)
        return await page.content()

    async def extract(self, target: ExtractionTarget) -> StrategyOutcome:
        s = self._settings
        context = None
        try:
            browser = await self._manager.get_browser()
            context = await browser.new_context(
                user_agent=s.browser_user_agent,
                viewport={"width": s.viewport_width, "height": s.viewport_height},
                locale=s.locale,
            )
            html = await self._render(context, target)
        except Exception as e:
            logger.warning("browser_extract_failed", source=target.source, url=target.url, error=str(e))
            return Miss(f"browser error: {e}")
        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception as e:
                    logger.debug("browser_context_close_error", url=target.url, error=str(e))

        selectors = self.descriptor(target)
        payload, raw_text = parse_page(html, selectors, s.raw_text_limit)
        if is_sparse(payload, raw_text, s.min_raw_text_chars):
            logger.info("browser_page_sparse", source=target.source, url=target.url, raw_chars=len(raw_text))
            return Miss("too little content")

        return Hit(
            ExtractionResult(
                source=target.source,
                url=target.url,
                data=payload,
                raw_text=raw_text,
                strategy=StrategyName.HEADLESS_BROWSER.value,
            )
        )
