"""
Selector-driven extraction from an HTML document.

Shared by the static HTML strategy and the headless browser strategy (which
hands over the rendered DOM), so both apply identical rules:

- title / price: text of the first element matching the selector
- specs: one entry per row matched by `specs_table`; the label and value are
  either children of the row, or the row itself is the label and the value
  is its next sibling element
- variants: trimmed text of every element matching `variants`
- raw text: body text with chrome elements removed, whitespace collapsed,
  capped at a fixed length
"""
from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from shared.models.domain import ScrapedPayload
from shared.utils.logging import get_logger

from verifier.profiles import SelectorDescriptor

logger = get_logger(__name__)

STRIPPED_TAGS = ("script", "style", "nav", "header", "footer", "noscript", "iframe")

_WS_RE = re.compile(r"\s+")


def _text(el: Optional[Tag]) -> str:
    return el.get_text().strip() if el is not None else ""


def _select_one(root: Tag, selector: str) -> Optional[Tag]:
    try:
        return root.select_one(selector)
    except SelectorSyntaxError as e:
        logger.warning("html_selector_invalid", selector=selector, error=str(e))
        return None


def _select(root: Tag, selector: str) -> list[Tag]:
    try:
        return list(root.select(selector))
    except SelectorSyntaxError as e:
        logger.warning("html_selector_invalid", selector=selector, error=str(e))
        return []


def _matches(el: Tag, selector: str) -> bool:
    try:
        return bool(el.css.match(selector))
    except SelectorSyntaxError:
        return False


def spec_key(label: str) -> str:
    return _WS_RE.sub("_", label.lower())


def _extract_specs(soup: BeautifulSoup, sel: SelectorDescriptor) -> dict[str, str]:
    specs: dict[str, str] = {}
    if not sel.specs_table:
        return specs
    for row in _select(soup, sel.specs_table):
        label = _text(_select_one(row, sel.spec_label))
        value = _text(_select_one(row, sel.spec_value))
        # Flat layouts: the row is the label, its next sibling holds the value
        if not label and _matches(row, sel.spec_label):
            label = _text(row)
            sibling = row.find_next_sibling()
            if isinstance(sibling, Tag) and _matches(sibling, sel.spec_value):
                value = _text(sibling)
        if label and value and label != value:
            specs[spec_key(label)] = value
    return specs


def extract_structured(soup: BeautifulSoup, selectors: Optional[SelectorDescriptor]) -> ScrapedPayload:
    """Structured fields from the selector descriptor; empty payload without one."""
    if selectors is None or selectors.is_empty:
        return ScrapedPayload()
    title = _text(_select_one(soup, selectors.title)) if selectors.title else ""
    price = _text(_select_one(soup, selectors.price)) if selectors.price else ""
    variants: list[str] = []
    if selectors.variants:
        variants = [t for t in (_text(el) for el in _select(soup, selectors.variants)) if t]
    return ScrapedPayload(
        title=title,
        price=price,
        specs=_extract_specs(soup, selectors),
        variants=variants,
    )


def extract_raw_text(soup: BeautifulSoup, limit: int) -> str:
    """Body text without chrome elements. Mutates `soup`."""
    for el in soup.find_all(STRIPPED_TAGS):
        el.decompose()
    root = soup.body or soup
    return _WS_RE.sub(" ", root.get_text(" ")).strip()[:limit]


def parse_page(
    html: str,
    selectors: Optional[SelectorDescriptor],
    limit: int,
) -> tuple[ScrapedPayload, str]:
    soup = BeautifulSoup(html, "html.parser")
    payload = extract_structured(soup, selectors)
    return payload, extract_raw_text(soup, limit)


def is_sparse(payload: ScrapedPayload, raw_text: str, min_chars: int) -> bool:
    """Too little signal: no structured field and a short raw text."""
    return payload.is_empty and len(raw_text) < min_chars
