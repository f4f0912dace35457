import logging
import time
from fastapi import APIRouter, Depends, Query
from typing import Optional

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.models.scraping import (
    ValidateRequest,
    ScrapeResultSubmit,
    UrlCheck,
    UrlSuggestion,
    PriceCapacityUpdate,
)
from pdxcamps.services.crawl.importer_adapter import validate_records
from pdxcamps.services.import_service import create_scrape_job, import_from_job, import_from_source
from pdxcamps.services.scrape_service import (
    update_session_price_and_capacity,
    update_source_session_counts,
    update_source_quality,
    record_url_check,
    suggest_url_update,
    apply_url_update,
    run_zero_price_check,
    list_alerts,
    acknowledge_alert,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scraping", tags=["scraping"])


def _refresh_source(source_id: str, store) -> None:
    update_source_session_counts(source_id, store=store)
    update_source_quality(source_id, store=store)


@router.post("/validate")
def api_validate(payload: ValidateRequest):
    """Completeness report for scraped sessions; nothing is written."""
    try:
        return validate_records([s.model_dump() for s in payload.sessions])
    except Exception as exc:
        raise http_error(exc, "Failed to validate sessions")


@router.post("/sources/{source_id}/results", status_code=201)
def api_submit_result(source_id: str, payload: ScrapeResultSubmit, store=Depends(get_store)):
    try:
        sessions = [s.model_dump() for s in payload.sessions]
        result = {
            "success": bool(sessions),
            "sessions": sessions,
            "organization": payload.organization,
            "scraped_at": int(time.time() * 1000),
        }
        job_id = create_scrape_job(source_id, result, store=store)
        if not payload.import_now:
            return {"job_id": job_id, "imported": False}
        summary = import_from_job(job_id, store=store)
        if summary.get("success"):
            _refresh_source(source_id, store)
        return {"job_id": job_id, "imported": True, **summary}
    except Exception as exc:
        raise http_error(exc, "Failed to store scrape result")


@router.post("/jobs/{job_id}/import")
def api_import_job(job_id: str, store=Depends(get_store)):
    try:
        return import_from_job(job_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to import job")


@router.post("/sources/{source_id}/import")
def api_import_source(source_id: str, store=Depends(get_store)):
    try:
        summary = import_from_source(source_id, store=store)
        if summary.get("success"):
            _refresh_source(source_id, store)
        return summary
    except Exception as exc:
        raise http_error(exc, "Failed to import source")


@router.post("/sources/{source_id}/refresh-stats")
def api_refresh_source(source_id: str, store=Depends(get_store)):
    try:
        counts = update_source_session_counts(source_id, store=store)
        quality = update_source_quality(source_id, store=store)
        return {**counts, "quality": quality}
    except Exception as exc:
        raise http_error(exc, "Failed to refresh source stats")


@router.post("/sources/{source_id}/url-checks")
def api_record_url_check(source_id: str, payload: UrlCheck, store=Depends(get_store)):
    try:
        return {"url_history": record_url_check(source_id, payload.url, payload.status_code, payload.ok, store=store)}
    except Exception as exc:
        raise http_error(exc, "Failed to record URL check")


@router.post("/sources/{source_id}/suggested-url")
def api_suggest_url(source_id: str, payload: UrlSuggestion, store=Depends(get_store)):
    try:
        suggest_url_update(source_id, payload.suggested_url, store=store)
        return {"suggested_url": payload.suggested_url}
    except Exception as exc:
        raise http_error(exc, "Failed to suggest URL")


@router.post("/sources/{source_id}/apply-url")
def api_apply_url(source_id: str, store=Depends(get_store)):
    try:
        url = apply_url_update(source_id, store=store)
        return {"applied": url is not None, "url": url}
    except Exception as exc:
        raise http_error(exc, "Failed to apply URL")


@router.patch("/sessions/{session_id}")
def api_update_price_capacity(session_id: str, payload: PriceCapacityUpdate, store=Depends(get_store)):
    try:
        return update_session_price_and_capacity(
            session_id, payload.price, payload.capacity, payload.source_id, store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to update session")


@router.post("/quality-check")
def api_quality_check(store=Depends(get_store)):
    """Raise alerts for sources whose sessions are mostly $0."""
    try:
        return run_zero_price_check(store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to run quality check")


@router.get("/alerts")
def api_list_alerts(
    source_id: Optional[str] = None,
    include_acknowledged: bool = Query(False),
    store=Depends(get_store),
):
    try:
        return list_alerts(source_id, include_acknowledged, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to list alerts")


@router.post("/alerts/{alert_id}/acknowledge")
def api_acknowledge_alert(alert_id: str, store=Depends(get_store)):
    try:
        return acknowledge_alert(alert_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to acknowledge alert")
