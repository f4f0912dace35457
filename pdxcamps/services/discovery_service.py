"""Discovered sources: candidate camp websites found by search, analyzed, then reviewed."""
import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import CampsError, NotFoundError
from pdxcamps.services.llm_client import extract_json, get_llm_client
from pdxcamps.services.web_search_service import WebSearch

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = ("pending_analysis", "pending_review")
REVIEW_DECISIONS = ("approved", "rejected")
PAGE_TYPES = ("camp_provider_main", "camp_program_list", "aggregator", "directory", "unknown")


def _now_ms() -> int:
    return int(time.time() * 1000)


def extract_domain(url: str) -> str:
    host = urlparse(url if "://" in url else f"https://{url}").hostname
    if not host:
        m = re.match(r"^(?:https?://)?(?:www\.)?([^/]+)", url, re.I)
        return m.group(1) if m else url
    return re.sub(r"^www\.", "", host)


def _load(source_id: str, store) -> Dict[str, Any]:
    source = store.get_doc("DiscoveredSource", source_id)
    if not source:
        raise NotFoundError("Discovered source not found")
    return source


def create_discovered_source(
    city_id: str,
    url: str,
    title: str,
    snippet: Optional[str] = None,
    discovery_query: str = "",
    *,
    store=graph_store,
) -> Dict[str, Any]:
    """Record a search hit. A URL already on file is not added again."""
    if not store.get_doc("City", city_id):
        raise NotFoundError("City not found")
    existing = store.find_docs("DiscoveredSource", {"url": url}, limit=1)
    if existing:
        return {"created": False, "message": "URL already discovered", "existing_source_id": existing[0]["id"]}
    source_id = store.insert_doc("DiscoveredSource", {
        "city_id": city_id,
        "discovered_at": _now_ms(),
        "discovery_query": discovery_query,
        "url": url,
        "domain": extract_domain(url),
        "title": title,
        "snippet": snippet,
        "status": "pending_analysis",
    })
    return {"created": True, "source_id": source_id}


def update_ai_analysis(source_id: str, analysis: Dict[str, Any], *, store=graph_store) -> Dict[str, Any]:
    _load(source_id, store)
    return store.patch_doc("DiscoveredSource", source_id, {"ai_analysis": analysis, "status": "pending_review"})


def _parse_analysis(text: str) -> Dict[str, Any]:
    try:
        data = extract_json(text, "{")
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def analyze_source(source_id: str, page_text: str, llm=None, *, store=graph_store) -> Dict[str, Any]:
    """Ask the LLM whether a fetched page is a camp provider and store the verdict."""
    source = _load(source_id, store)
    prompt = (
        "Decide whether this web page belongs to a provider of children's summer camps.\n"
        f"URL: {source.get('url')}\nTitle: {source.get('title')}\n\n"
        f"Page text (truncated):\n{(page_text or '')[:6000]}\n\n"
        "Respond with ONLY a JSON object with keys: is_likely_camp_site (bool), confidence (0-1), "
        "detected_camp_names (list of strings), has_schedule_info (bool), has_pricing_info (bool), "
        f"page_type (one of {', '.join(PAGE_TYPES)}), suggested_scraper_approach (string)."
    )
    client = llm or get_llm_client()
    text, _usage, _model = client.generate([{"role": "user", "content": prompt}], temperature=0.0, max_tokens=800)
    data = _parse_analysis(text)
    try:
        confidence = max(0.0, min(1.0, float(data.get("confidence", 0.0))))
    except (TypeError, ValueError):
        confidence = 0.0
    page_type = data.get("page_type") if data.get("page_type") in PAGE_TYPES else "unknown"
    analysis = {
        "is_likely_camp_site": bool(data.get("is_likely_camp_site")),
        "confidence": confidence,
        "detected_camp_names": [str(n) for n in (data.get("detected_camp_names") or [])][:20],
        "has_schedule_info": bool(data.get("has_schedule_info")),
        "has_pricing_info": bool(data.get("has_pricing_info")),
        "page_type": page_type,
        "suggested_scraper_approach": str(data.get("suggested_scraper_approach") or ""),
    }
    if not data:
        logger.warning("Unparseable analysis for discovered source %s", source_id)
    update_ai_analysis(source_id, analysis, store=store)
    return analysis


def review_source(source_id: str, status: str, review_notes: Optional[str] = None, *, store=graph_store) -> Dict[str, Any]:
    """Approve or reject a pending source. Approval creates the matching scrape source."""
    if status not in REVIEW_DECISIONS:
        raise CampsError(f"Invalid review status: {status}")
    source = _load(source_id, store)
    if source.get("status") not in REVIEWABLE_STATUSES:
        raise CampsError(f'Cannot review source with status "{source.get("status")}". Source must be pending.')
    patch: Dict[str, Any] = {
        "status": status,
        "reviewed_at": _now_ms(),
        "reviewed_by": "admin",
        "review_notes": review_notes,
    }
    if status == "approved":
        patch["scrape_source_id"] = store.insert_doc("ScrapeSource", {
            "name": source.get("title") or source.get("domain"),
            "url": source.get("url"),
            "city_id": source.get("city_id"),
            "is_active": True,
            "url_history": [],
            "session_count": 0,
            "active_session_count": 0,
        })
        logger.info("Approved discovered source %s as scrape source %s", source_id, patch["scrape_source_id"])
    updated = store.patch_doc("DiscoveredSource", source_id, patch)
    return {"success": True, "new_status": status, "scrape_source_id": updated.get("scrape_source_id")}


def mark_as_duplicate(source_id: str, duplicate_of_id: str, *, store=graph_store) -> Dict[str, Any]:
    _load(source_id, store)
    if not store.get_doc("DiscoveredSource", duplicate_of_id):
        raise NotFoundError("Duplicate reference source not found")
    if source_id == duplicate_of_id:
        raise CampsError("Cannot mark source as duplicate of itself")
    return store.patch_doc("DiscoveredSource", source_id, {
        "status": "duplicate",
        "reviewed_at": _now_ms(),
        "reviewed_by": "admin",
        "review_notes": f"Duplicate of source {duplicate_of_id}",
    })


def list_discovered_sources(status: Optional[str] = None, city_id: Optional[str] = None, *, store=graph_store) -> List[Dict[str, Any]]:
    filters: Dict[str, Any] = {}
    if status:
        filters["status"] = status
    if city_id:
        filters["city_id"] = city_id
    rows = store.find_docs("DiscoveredSource", filters or None)
    return sorted(rows, key=lambda r: r.get("discovered_at") or 0, reverse=True)


def execute_discovery_search(
    city_id: str,
    query: str,
    k: int = 20,
    *,
    searcher=None,
    store=graph_store,
) -> Dict[str, Any]:
    """Search the web and record each new domain as a discovered source.

    Only the first hit per domain in a result set is kept.
    """
    if not store.get_doc("City", city_id):
        raise NotFoundError("City not found")
    results = (searcher or WebSearch()).search(query, k=k)
    seen = set()
    skipped: List[str] = []
    created = 0
    for hit in results:
        url = hit.get("url")
        if not url:
            continue
        domain = extract_domain(url)
        if domain in seen:
            skipped.append(domain)
            continue
        seen.add(domain)
        res = create_discovered_source(
            city_id, url, hit.get("title") or domain, hit.get("snippet"), query, store=store,
        )
        if res["created"]:
            created += 1
    store.insert_doc("DiscoverySearch", {
        "city_id": city_id,
        "query": query,
        "results_count": len(results),
        "new_sources_found": created,
        "executed_at": _now_ms(),
    })
    logger.info("Discovery search %r: %d result(s), %d new source(s)", query, len(results), created)
    return {
        "success": True,
        "results_count": len(results),
        "new_sources_found": created,
        "skipped_domains": skipped,
    }


def analyze_discovered_url(source_id: str, *, searcher=None, llm=None, store=graph_store) -> Dict[str, Any]:
    """Fetch a discovered page and run ``analyze_source`` on its text."""
    source = _load(source_id, store)
    text = (searcher or WebSearch()).fetch_content(source.get("url") or "")
    if not text:
        return {"success": False, "error": f"Could not fetch {source.get('url')}"}
    return {"success": True, "analysis": analyze_source(source_id, text, llm, store=store)}


def batch_analyze_discovered_urls(
    source_ids: List[str],
    delay_ms: int = 500,
    *,
    searcher=None,
    llm=None,
    store=graph_store,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    results: List[Dict[str, Any]] = []
    processed = 0
    failed = 0
    for i, source_id in enumerate(source_ids):
        if i:
            sleep(delay_ms / 1000.0)
        try:
            res = analyze_discovered_url(source_id, searcher=searcher, llm=llm, store=store)
        except Exception as exc:
            res = {"success": False, "error": str(exc)}
        if res["success"]:
            processed += 1
            results.append({"source_id": source_id, "success": True})
        else:
            failed += 1
            results.append({"source_id": source_id, "success": False, "error": res.get("error")})
    return {"success": failed == 0, "processed": processed, "failed": failed, "results": results}
