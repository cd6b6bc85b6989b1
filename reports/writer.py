"""
Report generator: annotated spreadsheet and Markdown summary.
"""
from __future__ import annotations

from collections import Counter
from datetime import date
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

import pandas as pd

from shared.models.domain import ComparisonResult, FieldComparison
from shared.models.enums import FieldStatus, VariantStatus
from shared.utils.logging import get_logger

from reports.reader import InputError

logger = get_logger(__name__)

SPREADSHEET_REPORT_NAME = "ev-data-verified.xlsx"
MARKDOWN_REPORT_NAME = "ev-data-report.md"


def field_names(comparisons: Iterable[ComparisonResult]) -> list[str]:
    """Every compared field, first-seen order."""
    names: dict[str, None] = {}
    for comparison in comparisons:
        for name in comparison.fields:
            names.setdefault(name, None)
    return list(names)


def consulted_sources(comparisons: Iterable[ComparisonResult]) -> list[str]:
    """Source keys appearing in any comparison, first-seen order."""
    seen: dict[str, None] = {}
    for comparison in comparisons:
        for fc in comparison.fields.values():
            for source in fc.scraped:
                seen.setdefault(source, None)
        for source in (*comparison.variant_check.found_on, *comparison.variant_check.not_found_on):
            seen.setdefault(source, None)
    return list(seen)


def scraped_summary(fc: FieldComparison) -> str:
    return "; ".join(f"{source}: {value}" for source, value in fc.scraped.items())


def save_spreadsheet_report(
    comparisons: Sequence[ComparisonResult],
    original_path: Union[str, Path],
    output_dir: Union[str, Path],
) -> Path:
    """
    Copy the first sheet of the original workbook and append
    {field}_Status / {field}_Scraped / {field}_Note per field plus Variant_Status.
    """
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    output_path = out_dir / SPREADSHEET_REPORT_NAME

    try:
        with pd.ExcelFile(original_path) as workbook:
            sheet = workbook.sheet_names[0]
            df = workbook.parse(sheet, dtype=str, keep_default_na=False)
    except Exception as e:
        raise InputError(f'Failed to read spreadsheet "{original_path}": {e}') from e

    by_row = {c.row_number: c for c in comparisons}
    row_numbers = [position + 2 for position in range(len(df))]
    rows = [by_row.get(n) for n in row_numbers]

    for name in field_names(comparisons):
        cells = [c.fields.get(name) if c is not None else None for c in rows]
        df[f"{name}_Status"] = [fc.status.value if fc else "" for fc in cells]
        df[f"{name}_Scraped"] = [scraped_summary(fc) if fc else "" for fc in cells]
        df[f"{name}_Note"] = [(fc.note or "") if fc else "" for fc in cells]
    df["Variant_Status"] = [c.variant_check.status.value if c is not None else "" for c in rows]

    df.to_excel(output_path, sheet_name=str(sheet), index=False)
    logger.info("spreadsheet_report_saved", path=str(output_path), rows=len(df), comparisons=len(comparisons))
    return output_path


def _md(value: str) -> str:
    return value.replace("|", "\\|").replace("\n", " ")


def _status_counts(comparisons: Iterable[ComparisonResult]) -> Counter:
    counts: Counter = Counter()
    for comparison in comparisons:
        for fc in comparison.fields.values():
            counts[fc.status] += 1
    return counts


def _discrepancy_section(comparison: ComparisonResult, sites: Sequence[str]) -> list[str]:
    header = ["Field", "Authoritative", *sites, "Status"]
    lines = [
        f"### {comparison.label} (Row {comparison.row_number})",
        "",
        "| " + " | ".join(_md(h) for h in header) + " |",
        "| " + " | ".join("---" for _ in header) + " |",
    ]
    for name, fc in comparison.fields.items():
        row = [name, fc.authoritative, *(fc.scraped.get(site, "-") for site in sites), fc.status.value]
        lines.append("| " + " | ".join(_md(v) for v in row) + " |")
    lines.append("")

    vc = comparison.variant_check
    if vc.status != VariantStatus.MATCH:
        lines.append(f"**Variant check:** `{vc.authoritative}` status: **{vc.status.value}**")
        if vc.found_on:
            lines.append(f"- Found on: {', '.join(vc.found_on)}")
        if vc.not_found_on:
            lines.append(f"- Not found on: {', '.join(vc.not_found_on)}")
        lines.append("")
    return lines


def render_markdown_report(
    comparisons: Sequence[ComparisonResult],
    original_path: Union[str, Path],
    sites: Sequence[str],
    today: Optional[date] = None,
) -> str:
    day = (today or date.today()).isoformat()
    counts = _status_counts(comparisons)
    match = counts[FieldStatus.MATCH]
    mismatch = counts[FieldStatus.MISMATCH]
    missing = counts[FieldStatus.MISSING]

    lines = [
        "# EV Data Verification Report",
        "",
        f"**Date:** {day}",
        f"**Source:** {original_path}",
        f"**Sites checked:** {', '.join(sites)}",
        f"**Total entries:** {len(comparisons)}",
        "",
        "## Summary",
        "",
        "| Metric | Count |",
        "| --- | --- |",
        f"| Match | {match} |",
        f"| Mismatch | {mismatch} |",
        f"| Missing | {missing} |",
        f"| **Total fields checked** | **{match + mismatch + missing}** |",
        "",
        "## Discrepancies",
        "",
    ]

    with_issues = [c for c in comparisons if c.has_discrepancy]
    if not with_issues:
        lines.extend(["No discrepancies found. All values match.", ""])
    else:
        lines.extend([f"Found issues in **{len(with_issues)}** out of {len(comparisons)} entries.", ""])
        for comparison in with_issues:
            lines.extend(_discrepancy_section(comparison, sites))
    return "\n".join(lines)


def save_markdown_report(
    comparisons: Sequence[ComparisonResult],
    original_path: Union[str, Path],
    sites: Sequence[str],
    output_dir: Union[str, Path],
    today: Optional[date] = None,
) -> Path:
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    output_path = out_dir / MARKDOWN_REPORT_NAME
    output_path.write_text(render_markdown_report(comparisons, original_path, sites, today), encoding="utf-8")
    logger.info("markdown_report_saved", path=str(output_path), comparisons=len(comparisons))
    return output_path
