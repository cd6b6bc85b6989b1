"""
Data-check REST endpoints.

POST /v1/records/parse: read the authoritative spreadsheet into records
POST /v1/extractions: run the extraction waterfall for one target URL
POST /v1/comparisons: reconcile one record against scraped sources
POST /v1/reports: write the annotated spreadsheet and Markdown report
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from shared.config import get_settings
from shared.models.domain import AuthoritativeRecord, ComparisonResult, ExtractionResult, SourceData
from shared.utils.logging import get_logger

from api.dependencies import get_orchestrator
from reports.reader import parse_spreadsheet
from reports.writer import consulted_sources, save_markdown_report, save_spreadsheet_report
from verifier.engine import ExtractionOrchestrator
from verifier.reconciliation import compare_record

logger = get_logger(__name__)
router = APIRouter(prefix="/v1", tags=["checks"])


class ParseRequest(BaseModel):
    file_path: str
    sheet_name: Optional[str] = None


class ExtractionRequest(BaseModel):
    url: str
    source_key: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None


class ComparisonRequest(BaseModel):
    record: AuthoritativeRecord
    sources: list[SourceData] = Field(default_factory=list)


class ReportRequest(BaseModel):
    comparisons: list[ComparisonResult]
    original_path: str
    output_dir: Optional[str] = None
    sites: list[str] = Field(default_factory=list)


@router.post("/records/parse")
async def parse_records(body: ParseRequest) -> dict[str, Any]:
    """Parse the spreadsheet. Unreadable files, unknown sheets and missing columns return 400."""
    records = await asyncio.to_thread(parse_spreadsheet, body.file_path, body.sheet_name)
    return {
        "total_rows": len(records),
        "records": [r.model_dump() for r in records],
    }


@router.post("/extractions", response_model=ExtractionResult)
async def extract_target(
    body: ExtractionRequest,
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
) -> ExtractionResult:
    """Extract one page. A target no strategy could read comes back with strategy "none"."""
    return await orchestrator.extract(
        body.url,
        source_key=body.source_key,
        brand=body.brand,
        model=body.model,
    )


@router.post("/comparisons", response_model=ComparisonResult)
async def compare(body: ComparisonRequest) -> ComparisonResult:
    return compare_record(body.record, body.sources)


@router.post("/reports")
async def save_reports(body: ReportRequest) -> dict[str, str]:
    output_dir = Path(body.output_dir) if body.output_dir else get_settings().output_dir
    sites = body.sites or consulted_sources(body.comparisons)

    spreadsheet = await asyncio.to_thread(
        save_spreadsheet_report, body.comparisons, body.original_path, output_dir
    )
    markdown = await asyncio.to_thread(
        save_markdown_report, body.comparisons, body.original_path, sites, output_dir
    )
    logger.info("reports_saved", spreadsheet=str(spreadsheet), markdown=str(markdown), entries=len(body.comparisons))
    return {"spreadsheet_report": str(spreadsheet), "markdown_report": str(markdown)}
