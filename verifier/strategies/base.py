"""
Strategy contract for the extraction waterfall.
Every strategy returns Hit or Miss; a miss is an expected outcome, not an error.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

from shared.models.domain import ExtractionResult
from shared.models.enums import StrategyName

from verifier.profiles import SiteProfile, StrategyDescriptor


@dataclass(frozen=True)
class ExtractionTarget:
    """One page to extract, with its resolved source and optional hints."""
    url: str
    source: str
    profile: Optional[SiteProfile] = None
    brand: Optional[str] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class Hit:
    result: ExtractionResult


@dataclass(frozen=True)
class Miss:
    reason: str


StrategyOutcome = Union[Hit, Miss]


class ExtractionStrategy(ABC):
    """Base for the API, static HTML and headless browser extractors."""

    @property
    @abstractmethod
    def name(self) -> StrategyName:
        pass

    def descriptor(self, target: ExtractionTarget) -> Optional[StrategyDescriptor]:
        """The profile descriptor this strategy reads, or None without a profile."""
        if target.profile is None:
            return None
        return target.profile.descriptor_for(self.name)

    @abstractmethod
    async def extract(self, target: ExtractionTarget) -> StrategyOutcome:
        """
        Attempt extraction of target. Return Miss with a reason on timeout,
        transport error, bad status or too little data. Do not raise.
        """
        pass
