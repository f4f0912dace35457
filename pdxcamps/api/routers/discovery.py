from fastapi import APIRouter, Depends
from typing import Optional

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.models.discovery import (
    DiscoveredSourceCreate,
    AnalyzeRequest,
    ReviewRequest,
    DuplicateRequest,
    SearchRequest,
    BatchAnalyzeRequest,
)
from pdxcamps.services.discovery_service import (
    create_discovered_source,
    analyze_source,
    review_source,
    mark_as_duplicate,
    list_discovered_sources,
    execute_discovery_search,
    analyze_discovered_url,
    batch_analyze_discovered_urls,
)
from pdxcamps.services.llm_client import get_llm_client
from pdxcamps.services.web_search_service import WebSearch

router = APIRouter(prefix="/discovery", tags=["discovery"])


@router.post("/sources", status_code=201)
def api_create_discovered_source(payload: DiscoveredSourceCreate, store=Depends(get_store)):
    try:
        return create_discovered_source(
            payload.city_id, payload.url, payload.title, payload.snippet, payload.discovery_query, store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to record discovered source")


@router.get("/sources")
def api_list_discovered_sources(status: Optional[str] = None, city_id: Optional[str] = None, store=Depends(get_store)):
    try:
        return list_discovered_sources(status, city_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to list discovered sources")


@router.post("/sources/{source_id}/analyze")
def api_analyze_source(source_id: str, payload: AnalyzeRequest, store=Depends(get_store)):
    try:
        return analyze_source(source_id, payload.page_text, get_llm_client(), store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to analyze source")


@router.post("/sources/{source_id}/review")
def api_review_source(source_id: str, payload: ReviewRequest, store=Depends(get_store)):
    try:
        return review_source(source_id, payload.status, payload.review_notes, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to review source")


@router.post("/sources/{source_id}/duplicate")
def api_mark_duplicate(source_id: str, payload: DuplicateRequest, store=Depends(get_store)):
    try:
        return mark_as_duplicate(source_id, payload.duplicate_of_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to mark duplicate")


@router.post("/search")
def api_discovery_search(payload: SearchRequest, store=Depends(get_store)):
    try:
        return execute_discovery_search(payload.city_id, payload.query, payload.k, searcher=WebSearch(), store=store)
    except Exception as exc:
        raise http_error(exc, "Discovery search failed")


@router.post("/sources/{source_id}/fetch-and-analyze")
def api_fetch_and_analyze(source_id: str, store=Depends(get_store)):
    """Fetch the page behind a discovered source and classify it."""
    try:
        return analyze_discovered_url(source_id, searcher=WebSearch(), llm=get_llm_client(), store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to analyze source")


@router.post("/analyze-batch")
def api_analyze_batch(payload: BatchAnalyzeRequest, store=Depends(get_store)):
    try:
        return batch_analyze_discovered_urls(
            payload.source_ids, payload.delay_ms, searcher=WebSearch(), llm=get_llm_client(), store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to analyze sources")
