"""
Value normalization for reconciliation.

Unit and currency tokens are removed only as whole words, so "Tesla" keeps its
letters and "AED 189,900" normalizes to the same form as "189900".
"""
from __future__ import annotations

import re

UNIT_TOKENS = ("AED", "USD", "EUR", "SAR", "km/h", "kWh", "km", "hp", "kW", "kg", "mm")

_UNIT_RE = re.compile(r"\b(" + "|".join(re.escape(t) for t in UNIT_TOKENS) + r")\b", re.IGNORECASE)
_SEPARATORS_RE = re.compile(r"[,\s]")
_WS_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")

# canonical label -> synonyms (compared lowercased, hyphens as spaces)
SYNONYM_GROUPS: dict[str, tuple[str, ...]] = {
    "electric": ("electric", "bev", "ev", "battery electric", "battery electric vehicle", "full electric", "fully electric"),
    "plug-in hybrid": ("plug in hybrid", "phev", "plug in hybrid electric"),
    "hybrid": ("hybrid", "hev", "full hybrid", "self charging hybrid"),
    "rwd": ("rwd", "rear wheel drive", "rear wheel", "2wd rear"),
    "fwd": ("fwd", "front wheel drive", "front wheel", "2wd front"),
    "awd": ("awd", "all wheel drive", "4wd", "4x4", "four wheel drive", "dual motor awd"),
    "automatic": ("automatic", "auto", "single speed", "single speed automatic", "1 speed automatic"),
    "manual": ("manual", "manual transmission"),
}


def _label_key(value: str) -> str:
    return _WS_RE.sub(" ", value.lower().replace("-", " ")).strip()


_CANONICAL: dict[str, str] = {
    _label_key(synonym): canonical
    for canonical, synonyms in SYNONYM_GROUPS.items()
    for synonym in synonyms
}


def normalize_value(value: str) -> str:
    """Drop whole-word unit/currency tokens, commas and whitespace; lowercase."""
    return _SEPARATORS_RE.sub("", _UNIT_RE.sub("", value)).strip().lower()


def canonical_label(value: str) -> str:
    """Canonical label for a known synonym, else the lowercased, space-collapsed text."""
    key = _label_key(value)
    return _CANONICAL.get(key, key)


def values_match(authoritative: str, scraped: str) -> bool:
    if normalize_value(authoritative) == normalize_value(scraped):
        return True
    return canonical_label(authoritative) == canonical_label(scraped)


def extract_numbers(value: str) -> list[float]:
    """Every numeric token in `value`, thousands separators removed."""
    return [float(m.replace(",", "")) for m in _NUMBER_RE.findall(value)]
