"""
Pydantic v2 domain models shared by the verifier, the reports and the API.
These are the canonical wire/internal representations.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import STRATEGY_NONE, FieldStatus, VariantStatus


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class FrozenModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)


# ── Input records ───────────────────────────────────────────────────────
class AuthoritativeRecord(FrozenModel):
    """One row of the authoritative spreadsheet."""
    row_number: int
    brand: str = ""
    model: str = ""
    variant: str = ""
    price: str = ""
    specs: dict[str, str] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        return f"{self.brand} {self.model}".strip()


# ── Extraction ──────────────────────────────────────────────────────────
class ScrapedPayload(FrozenModel):
    title: str = ""
    price: str = ""
    specs: dict[str, str] = Field(default_factory=dict)
    variants: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.title or self.price or self.specs or self.variants)


class ExtractionResult(FrozenModel):
    """
    Outcome of one extraction call.

    `strategy` is the strategy that produced the data, or one of the terminal
    tags ("skipped: disabled", "none"). `attempted` lists the strategies the
    waterfall walked through, in order, including an API step that was gated
    off; `misses` keeps the reason each of them missed.
    """
    source: str
    url: str
    data: ScrapedPayload = Field(default_factory=ScrapedPayload)
    raw_text: str = ""
    strategy: str = STRATEGY_NONE
    attempted: list[str] = Field(default_factory=list)
    misses: dict[str, str] = Field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return not self.data.is_empty or bool(self.raw_text)

    @classmethod
    def empty(
        cls,
        source: str,
        url: str,
        strategy: str,
        attempted: Optional[list[str]] = None,
        misses: Optional[dict[str, str]] = None,
    ) -> "ExtractionResult":
        return cls(
            source=source,
            url=url,
            strategy=strategy,
            attempted=list(attempted or []),
            misses=dict(misses or {}),
        )


class SourceData(DomainModel):
    """The slice of one source's extraction that reconciliation consumes."""
    source: str
    price: str = ""
    specs: dict[str, str] = Field(default_factory=dict)
    variants: list[str] = Field(default_factory=list)

    @classmethod
    def from_extraction(cls, result: ExtractionResult) -> "SourceData":
        return cls(
            source=result.source,
            price=result.data.price,
            specs=dict(result.data.specs),
            variants=list(result.data.variants),
        )


# ── Comparison ──────────────────────────────────────────────────────────
class FieldComparison(DomainModel):
    authoritative: str
    scraped: dict[str, str] = Field(default_factory=dict)
    status: FieldStatus = FieldStatus.MISSING
    note: Optional[str] = None


class VariantCheck(DomainModel):
    authoritative: str
    found_on: list[str] = Field(default_factory=list)
    not_found_on: list[str] = Field(default_factory=list)
    status: VariantStatus = VariantStatus.MISSING


class ComparisonResult(DomainModel):
    row_number: int
    label: str
    fields: dict[str, FieldComparison] = Field(default_factory=dict)
    variant_check: VariantCheck

    @property
    def has_discrepancy(self) -> bool:
        if self.variant_check.status != VariantStatus.MATCH:
            return True
        return any(fc.status != FieldStatus.MATCH for fc in self.fields.values())
