from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.import_service import create_scrape_job, import_from_job
from pdxcamps.services.validation_service import calculate_source_quality, validate_session
from .base import strip_meta
from .pipeline import read_jsonl

logger = logging.getLogger(__name__)


def records_to_scrape_result(records: Iterable[Dict[str, Any]], organization: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Wrap staged session records as a scrape result."""
    sessions = [strip_meta(r) for r in records if r.get("name")]
    return {
        "success": bool(sessions),
        "sessions": sessions,
        "organization": organization,
        "scraped_at": int(time.time() * 1000),
    }


def validate_records(records: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate every staged session and summarize the batch like a source quality report."""
    records = list(records)
    rows: List[Dict[str, Any]] = []
    for rec in records:
        v = validate_session(rec)
        rows.append({
            "name": rec.get("name"),
            "completeness_score": v["completeness_score"],
            "missing_fields": v["missing_fields"],
            "errors": v["errors"],
            "is_complete": v["is_complete"],
        })
    quality = calculate_source_quality(rows)
    quality["sessions"] = rows
    quality["zero_price_count"] = sum(1 for r in records if r.get("price_in_cents") == 0)
    return quality


def validate_sessions_jsonl(jsonl_path: str) -> Dict[str, Any]:
    return validate_records(read_jsonl(jsonl_path))


def import_sessions_jsonl(
    jsonl_path: str,
    source_id: str,
    *,
    organization: Optional[Dict[str, Any]] = None,
    store=graph_store,
) -> Dict[str, Any]:
    """Stage a JSONL of scraped sessions as a completed scrape job, then import it."""
    records = read_jsonl(jsonl_path)
    result = records_to_scrape_result(records, organization)
    job_id = create_scrape_job(source_id, result, store=store)
    logger.info("Created scrape job %s with %d session(s) from %s", job_id, len(result["sessions"]), jsonl_path)
    summary = import_from_job(job_id, store=store)
    summary["job_id"] = job_id
    summary["processed"] = len(records)
    return summary
