"""
Site profiles: declarative per-source descriptors and the JSON document store.

Each source is described by one JSON document (config/sites/<key>.json) holding
its base URL, CSS selectors, an optional API mapping and optional strategy
preferences. Documents are read-only; a malformed document is logged and
treated as absent so extraction degrades to raw-text only.
"""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from shared.models.enums import StrategyName
from shared.utils.logging import get_logger

logger = get_logger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def hostname(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


class ProfileModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class ResponseMapping(ProfileModel):
    """Dotted/indexed paths into the API response, e.g. data.results[0].price."""
    title: Optional[str] = None
    price: Optional[str] = None
    specs: Optional[str] = None
    variants: Optional[str] = None


class ApiDescriptor(ProfileModel):
    endpoint: str
    search_path: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=dict)
    response_mapping: ResponseMapping = Field(default_factory=ResponseMapping)


class SelectorDescriptor(ProfileModel):
    title: Optional[str] = None
    price: Optional[str] = None
    specs_table: Optional[str] = None
    spec_label: str = "td:first-child"
    spec_value: str = "td:last-child"
    variants: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.title or self.price or self.specs_table or self.variants)


StrategyDescriptor = Union[ApiDescriptor, SelectorDescriptor]


class SiteProfile(ProfileModel):
    key: str = ""
    name: str = ""
    base_url: str
    disabled: bool = False
    disabled_reason: Optional[str] = None
    preferred_strategy: Optional[StrategyName] = None
    api: Optional[ApiDescriptor] = None
    selectors: SelectorDescriptor = Field(default_factory=SelectorDescriptor)

    @field_validator("preferred_strategy", mode="before")
    @classmethod
    def _accept_underscored_strategy(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower().replace("_", "-")
        return value

    @property
    def host(self) -> Optional[str]:
        return hostname(self.base_url)

    def descriptor_for(self, strategy: StrategyName) -> Optional[StrategyDescriptor]:
        """Typed descriptor consumed by a strategy: API mapping or selectors."""
        if strategy == StrategyName.API:
            return self.api
        return self.selectors


class SiteProfileStore:
    """Reads site profile documents from a directory of <key>.json files."""

    def __init__(self, sites_dir: Union[str, Path]) -> None:
        self._dir = Path(sites_dir)

    @property
    def sites_dir(self) -> Path:
        return self._dir

    def keys(self) -> list[str]:
        if not self._dir.is_dir():
            logger.warning("site_profile_dir_missing", path=str(self._dir))
            return []
        return sorted(p.stem for p in self._dir.glob("*.json"))

    def load(self, key: str) -> Optional[SiteProfile]:
        """Load one profile; None when missing or malformed."""
        if not _KEY_RE.match(key or ""):
            logger.warning("site_profile_bad_key", key=key)
            return None
        path = self._dir / f"{key}.json"
        if not path.is_file():
            return None
        return self._parse(key, path)

    def load_all(self) -> dict[str, SiteProfile]:
        """Load every parseable profile, keyed by source key."""
        profiles: dict[str, SiteProfile] = {}
        for key in self.keys():
            profile = self._parse(key, self._dir / f"{key}.json")
            if profile is not None:
                profiles[key] = profile
        return profiles

    def _parse(self, key: str, path: Path) -> Optional[SiteProfile]:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("profile document must be a JSON object")
            raw["key"] = key
            return SiteProfile.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("site_profile_invalid", key=key, path=str(path), error=str(e))
            return None


def detect_source_key(url: str, profiles: dict[str, SiteProfile]) -> Optional[str]:
    """
    Match the target's host against each profile's base URL host.
    Exact host or subdomain wins; if either host cannot be parsed, fall back
    to the key appearing in the URL string.
    """
    target_host = hostname(url)
    for key in sorted(profiles):
        profile_host = profiles[key].host
        if not target_host or not profile_host:
            if key in url:
                return key
            continue
        if target_host == profile_host or target_host.endswith("." + profile_host):
            return key
    return None
