"""
Reconciliation: compare one authoritative record against N scraped sources.

Price is compared as a range (authoritative number inside the span of every
scraped number), every other field by normalized/canonical equality per
source, and the variant by case-insensitive substring presence. Comparison
never fails; every field lands in one of match / mismatch / missing.
"""
from __future__ import annotations

from typing import Iterable, Mapping, Optional

from shared.models.domain import (
    AuthoritativeRecord,
    ComparisonResult,
    FieldComparison,
    SourceData,
    VariantCheck,
)
from shared.models.enums import FieldStatus, VariantStatus
from shared.utils.logging import get_logger
from shared.utils.metrics import FIELD_COMPARISONS

from verifier.aliases import resolve_field
from verifier.normalize import extract_numbers, values_match

logger = get_logger(__name__)

PRICE_FIELD = "price"

NOTE_NO_DATA = "No scraped data available for this field"
NOTE_SOME_SOURCES = "Value matches some sources but not all"
NOTE_NO_SOURCE = "Value does not match any scraped source"
NOTE_NO_NUMBER = "No numeric price could be parsed"


def _fmt_number(n: float) -> str:
    return f"{n:,.0f}" if n.is_integer() else f"{n:,}"


def unique_sources(sources: Iterable[SourceData]) -> list[SourceData]:
    """One entry per source key; a repeated key replaces the earlier one."""
    by_key: dict[str, SourceData] = {}
    for source in sources:
        by_key[source.source] = source
    return list(by_key.values())


def compare_field(authoritative: str, scraped: Mapping[str, str]) -> FieldComparison:
    """Classify one field given each source's value (blank values count as absent)."""
    present = {src: value for src, value in scraped.items() if value and value.strip()}
    if not present:
        return FieldComparison(
            authoritative=authoritative, scraped={}, status=FieldStatus.MISSING, note=NOTE_NO_DATA
        )

    matched = [values_match(authoritative, value) for value in present.values()]
    if all(matched):
        status, note = FieldStatus.MATCH, None
    elif any(matched):
        status, note = FieldStatus.MISMATCH, NOTE_SOME_SOURCES
    else:
        status, note = FieldStatus.MISMATCH, NOTE_NO_SOURCE
    return FieldComparison(authoritative=authoritative, scraped=present, status=status, note=note)


def compare_price(authoritative: str, sources: Iterable[SourceData]) -> FieldComparison:
    """
    Range check: first number of the authoritative price against
    [min, max] of every number found in the scraped prices, inclusive.
    """
    scraped = {s.source: s.price for s in unique_sources(sources) if s.price and s.price.strip()}
    if not scraped:
        return FieldComparison(
            authoritative=authoritative, scraped={}, status=FieldStatus.MISSING, note=NOTE_NO_DATA
        )

    targets = extract_numbers(authoritative)
    found = [n for value in scraped.values() for n in extract_numbers(value)]
    if not targets or not found:
        # missing keeps scraped empty; the unreadable values go in the note
        seen = ", ".join(f"{source}: {value}" for source, value in scraped.items())
        return FieldComparison(
            authoritative=authoritative,
            scraped={},
            status=FieldStatus.MISSING,
            note=f"{NOTE_NO_NUMBER} ({seen})",
        )

    target, low, high = targets[0], min(found), max(found)
    if low <= target <= high:
        return FieldComparison(authoritative=authoritative, scraped=scraped, status=FieldStatus.MATCH)
    return FieldComparison(
        authoritative=authoritative,
        scraped=scraped,
        status=FieldStatus.MISMATCH,
        note=f"{_fmt_number(target)} outside scraped range {_fmt_number(low)} - {_fmt_number(high)}",
    )


def check_variant(variant: str, sources: Iterable[SourceData]) -> VariantCheck:
    needle = variant.strip().lower()
    found_on: list[str] = []
    not_found_on: list[str] = []
    for source in unique_sources(sources):
        if any(needle in v.lower() for v in source.variants):
            found_on.append(source.source)
        else:
            not_found_on.append(source.source)

    if found_on and not not_found_on:
        status = VariantStatus.MATCH
    elif found_on:
        status = VariantStatus.PARTIAL
    else:
        status = VariantStatus.MISSING
    return VariantCheck(authoritative=variant, found_on=found_on, not_found_on=not_found_on, status=status)


def _scraped_for(field: str, sources: list[SourceData]) -> dict[str, str]:
    scraped: dict[str, str] = {}
    for source in sources:
        key: Optional[str] = resolve_field(field, source.specs.keys())
        if key is not None:
            scraped[source.source] = source.specs[key]
    return scraped


def compare_record(record: AuthoritativeRecord, sources: Iterable[SourceData]) -> ComparisonResult:
    """Price, every spec field of the record, and the variant check."""
    consulted = unique_sources(sources)

    fields: dict[str, FieldComparison] = {PRICE_FIELD: compare_price(record.price, consulted)}
    for field, value in record.specs.items():
        fields[field] = compare_field(value, _scraped_for(field, consulted))

    for comparison in fields.values():
        FIELD_COMPARISONS.labels(status=comparison.status.value).inc()

    result = ComparisonResult(
        row_number=record.row_number,
        label=record.label,
        fields=fields,
        variant_check=check_variant(record.variant, consulted),
    )
    logger.debug(
        "record_compared",
        row=record.row_number,
        label=record.label,
        sources=[s.source for s in consulted],
        discrepancy=result.has_discrepancy,
    )
    return result
