"""
API strategy: one JSON GET against the source's search endpoint.
Fields are mapped out of the response with dotted/indexed paths from the profile.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Optional
from urllib.parse import quote

import httpx

from shared.models.domain import ExtractionResult, ScrapedPayload
from shared.models.enums import StrategyName
from shared.utils.logging import get_logger

from verifier.config import VerifierSettings, get_verifier_settings
from verifier.json_path import MISSING, get_path
from verifier.profiles import ApiDescriptor, ResponseMapping
from verifier.strategies.base import ExtractionStrategy, ExtractionTarget, Hit, Miss, StrategyOutcome

logger = get_logger(__name__)


def build_request_url(descriptor: ApiDescriptor, brand: str, model: str) -> str:
    """Endpoint plus the search path with URL-encoded brand/model substituted."""
    if not descriptor.search_path:
        return descriptor.endpoint
    path = descriptor.search_path.replace("{brand}", quote(brand, safe="")).replace(
        "{model}", quote(model, safe="")
    )
    return descriptor.endpoint.rstrip("/") + path


def _as_text(value: Any) -> str:
    if value is MISSING or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value).strip()


def map_response(doc: Any, mapping: ResponseMapping) -> ScrapedPayload:
    """Apply the response mapping; unresolvable paths leave the field empty."""
    specs_raw = get_path(doc, mapping.specs)
    specs: dict[str, str] = {}
    if isinstance(specs_raw, dict):
        specs = {str(k): _as_text(v) for k, v in specs_raw.items()}

    variants_raw = get_path(doc, mapping.variants)
    variants: list[str] = []
    if isinstance(variants_raw, list):
        variants = [t for t in (_as_text(v) for v in variants_raw) if t]

    return ScrapedPayload(
        title=_as_text(get_path(doc, mapping.title)),
        price=_as_text(get_path(doc, mapping.price)),
        specs=specs,
        variants=variants,
    )


class ApiStrategy(ExtractionStrategy):
    """Direct API call. Cheapest strategy; needs an API descriptor plus brand and model."""

    def __init__(
        self,
        settings: Optional[VerifierSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_verifier_settings()
        self._transport = transport

    @property
    def name(self) -> StrategyName:
        return StrategyName.API

    async def _get(self, url: str, headers: dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._settings.api_timeout_s,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            return await client.get(url, headers=headers)

    async def extract(self, target: ExtractionTarget) -> StrategyOutcome:
        descriptor = self.descriptor(target)
        if not isinstance(descriptor, ApiDescriptor):
            return Miss("no api descriptor")
        if not target.brand or not target.model:
            return Miss("brand and model hints required")

        url = build_request_url(descriptor, target.brand, target.model)
        headers = {
            "Accept": "application/json",
            "User-Agent": self._settings.user_agent,
            **descriptor.headers,
        }
        try:
            resp = await asyncio.wait_for(
                self._get(url, headers), timeout=self._settings.api_timeout_s
            )
        except asyncio.TimeoutError:
            logger.warning("api_fetch_timeout", source=target.source, url=url)
            return Miss("timeout")
        except httpx.HTTPError as e:
            logger.warning("api_fetch_error", source=target.source, url=url, error=str(e))
            return Miss(f"transport error: {e}")

        if not resp.is_success:
            logger.warning("api_fetch_status", source=target.source, url=url, status=resp.status_code)
            return Miss(f"http {resp.status_code}")

        try:
            doc = resp.json()
        except ValueError as e:
            logger.warning("api_invalid_json", source=target.source, url=url, error=str(e))
            return Miss("invalid json")

        payload = map_response(doc, descriptor.response_mapping)
        if payload.is_empty:
            logger.info("api_no_usable_data", source=target.source, url=url)
            return Miss("response carried no usable data")

        raw_text = json.dumps(doc, ensure_ascii=False)[: self._settings.raw_text_limit]
        return Hit(
            ExtractionResult(
                source=target.source,
                url=target.url,
                data=payload,
                raw_text=raw_text,
                strategy=StrategyName.API.value,
            )
        )
