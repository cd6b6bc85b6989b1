"""
Spreadsheet reader: one AuthoritativeRecord per data row.

Brand / Model / Variant / Price columns are matched case-insensitively;
every other non-empty cell becomes a spec keyed by its lowercased header
with whitespace runs replaced by "_".
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd

from shared.models.domain import AuthoritativeRecord
from shared.utils.logging import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("brand", "model", "variant", "price")

_WS_RE = re.compile(r"\s+")


class InputError(ValueError):
    """Unreadable spreadsheet, unknown sheet or missing required columns."""


def _cell(value: Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def spec_key(header: str) -> str:
    return _WS_RE.sub("_", header.strip().lower())


def _required_map(headers: list[str]) -> dict[str, str]:
    """required name -> actual header; raises InputError listing what is missing."""
    found: dict[str, str] = {}
    for required in REQUIRED_COLUMNS:
        for header in headers:
            if header.strip().lower() == required:
                found[required] = header
                break
    missing = [c for c in REQUIRED_COLUMNS if c not in found]
    if missing:
        raise InputError(
            f"Missing required columns: {', '.join(missing)}. "
            f"Found columns: {', '.join(headers)}. "
            "Expected (case-insensitive): Brand, Model, Variant, Price"
        )
    return found


def parse_spreadsheet(path: Union[str, Path], sheet_name: Optional[str] = None) -> list[AuthoritativeRecord]:
    """Read `sheet_name` (first sheet by default) into records; row_number is the spreadsheet row."""
    try:
        with pd.ExcelFile(path) as workbook:
            sheets = [str(s) for s in workbook.sheet_names]
            target = sheet_name or (sheets[0] if sheets else None)
            if target is None or target not in sheets:
                raise InputError(f'Sheet "{target}" not found. Available sheets: {", ".join(sheets)}')
            df = workbook.parse(target, dtype=str, keep_default_na=False)
    except InputError:
        raise
    except Exception as e:
        raise InputError(f'Failed to read spreadsheet "{path}": {e}') from e

    if df.empty:
        logger.info("spreadsheet_empty", path=str(path), sheet=target)
        return []

    headers = [str(c) for c in df.columns]
    df.columns = headers
    columns = _required_map(headers)
    known = set(columns.values())
    spec_headers = [h for h in headers if h not in known and not h.startswith("Unnamed:")]

    records: list[AuthoritativeRecord] = []
    for position, (_, row) in enumerate(df.iterrows()):
        specs: dict[str, str] = {}
        for header in spec_headers:
            value = _cell(row[header])
            if value:
                specs[spec_key(header)] = value
        records.append(
            AuthoritativeRecord(
                row_number=position + 2,
                brand=_cell(row[columns["brand"]]),
                model=_cell(row[columns["model"]]),
                variant=_cell(row[columns["variant"]]),
                price=_cell(row[columns["price"]]),
                specs=specs,
            )
        )
    logger.info("spreadsheet_parsed", path=str(path), sheet=target, rows=len(records))
    return records
