"""
Static HTML strategy: plain GET with retry and linear backoff, then selector
extraction over the parsed document.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import httpx

from shared.models.domain import ExtractionResult
from shared.models.enums import StrategyName
from shared.utils.logging import get_logger

from verifier.config import VerifierSettings, get_verifier_settings
from verifier.html_extract import is_sparse, parse_page
from verifier.strategies.base import ExtractionStrategy, ExtractionTarget, Hit, Miss, StrategyOutcome

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]

BROWSER_LIKE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


class StaticHtmlStrategy(ExtractionStrategy):
    """Fetch the page without running scripts and read it with the profile's selectors."""

    def __init__(
        self,
        settings: Optional[VerifierSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings or get_verifier_settings()
        self._transport = transport
        self._sleep = sleep

    @property
    def name(self) -> StrategyName:
        return StrategyName.STATIC_HTML

    async def _get(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        headers = {"User-Agent": self._settings.user_agent, **BROWSER_LIKE_HEADERS}
        return await asyncio.wait_for(
            client.get(url, headers=headers), timeout=self._settings.static_timeout_s
        )

    async def fetch_with_retry(self, url: str) -> Optional[str]:
        """
        Up to 1 + static_max_retries attempts. Sleeps base * attempt between
        attempts. Returns the body of the first successful non-empty response,
        or None once every attempt failed.
        """
        attempts = 1 + max(self._settings.static_max_retries, 0)
        async with httpx.AsyncClient(
            timeout=self._settings.static_timeout_s,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            for attempt in range(1, attempts + 1):
                try:
                    resp = await self._get(client, url)
                    if not resp.is_success:
                        logger.warning(
                            "static_fetch_status",
                            url=url,
                            status=resp.status_code,
                            attempt=attempt,
                            attempts=attempts,
                        )
                    elif not resp.text.strip():
                        logger.warning("static_fetch_empty", url=url, attempt=attempt, attempts=attempts)
                    else:
                        return resp.text
                except asyncio.TimeoutError:
                    logger.warning("static_fetch_timeout", url=url, attempt=attempt, attempts=attempts)
                except httpx.HTTPError as e:
                    logger.warning(
                        "static_fetch_error", url=url, attempt=attempt, attempts=attempts, error=str(e)
                    )

                if attempt < attempts:
                    await self._sleep(self._settings.static_retry_base_delay_s * attempt)
        return None

    async def extract(self, target: ExtractionTarget) -> StrategyOutcome:
        html = await self.fetch_with_retry(target.url)
        if html is None:
            return Miss("fetch failed after retries")

        selectors = self.descriptor(target)
        payload, raw_text = parse_page(html, selectors, self._settings.raw_text_limit)
        if is_sparse(payload, raw_text, self._settings.min_raw_text_chars):
            logger.info("static_page_sparse", source=target.source, url=target.url, raw_chars=len(raw_text))
            return Miss("too little content")

        return Hit(
            ExtractionResult(
                source=target.source,
                url=target.url,
                data=payload,
                raw_text=raw_text,
                strategy=StrategyName.STATIC_HTML.value,
            )
        )
