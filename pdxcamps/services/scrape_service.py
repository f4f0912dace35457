"""Bookkeeping around scrape sources: session quality, URL history and alerts."""
import logging
import time
from typing import Any, Dict, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import NotFoundError
from pdxcamps.services.registration_service import capacity_status
from pdxcamps.services.validation_service import (
    calculate_source_quality,
    determine_session_status,
    validate_session,
)

logger = logging.getLogger(__name__)

URL_HISTORY_LIMIT = 10
# below this completeness a scraped session is parked as a PendingSession
PENDING_SCORE_THRESHOLD = 50
ALERT_DEDUPE_WINDOW_MS = 24 * 60 * 60 * 1000
ZERO_PRICE_MARKER = "zero-price"
ZERO_PRICE_THRESHOLD = 0.5


def _now_ms() -> int:
    return int(time.time() * 1000)


def _load_source(source_id: str, store) -> Dict[str, Any]:
    source = store.get_doc("ScrapeSource", source_id)
    if not source:
        raise NotFoundError("Source not found")
    return source


def scraped_session_doc(
    scraped: Dict[str, Any],
    *,
    camp_id: str,
    location_id: str,
    organization_id: str,
    city_id: str,
    source_id: str,
) -> Dict[str, Any]:
    """Session document for a scraped session, with import defaults filled in."""
    return {
        "camp_id": camp_id,
        "location_id": location_id,
        "organization_id": organization_id,
        "city_id": city_id,
        "source_id": source_id,
        "camp_name": scraped.get("name"),
        "start_date": scraped["start_date"],
        "end_date": scraped.get("end_date") or scraped["start_date"],
        "drop_off_time": {
            "hour": scraped["drop_off_hour"] if scraped.get("drop_off_hour") is not None else 9,
            "minute": scraped.get("drop_off_minute") or 0,
        },
        "pick_up_time": {
            "hour": scraped["pick_up_hour"] if scraped.get("pick_up_hour") is not None else 15,
            "minute": scraped.get("pick_up_minute") or 0,
        },
        "extended_care_available": False,
        "price": scraped.get("price_in_cents") or 0,
        "currency": "USD",
        "capacity": 20,
        "enrolled_count": 0,
        "waitlist_count": 0,
        "age_requirements": {
            "min_age": scraped.get("min_age"),
            "max_age": scraped.get("max_age"),
            "min_grade": scraped.get("min_grade"),
            "max_grade": scraped.get("max_grade"),
        },
        "status": "active",
        "waitlist_enabled": True,
        "external_registration_url": scraped.get("registration_url"),
        "description": scraped.get("description"),
        "last_scraped_at": _now_ms(),
    }


def create_session_with_completeness(
    scraped: Dict[str, Any],
    *,
    camp_id: str,
    location_id: str,
    organization_id: str,
    city_id: str,
    source_id: str,
    capacity: Optional[int] = None,
    enrolled_count: Optional[int] = None,
    store=graph_store,
) -> Dict[str, Any]:
    """Insert a scraped session with its completeness score and a status derived from it."""
    validation = validate_session(scraped)
    status = determine_session_status(
        validation["completeness_score"], scraped.get("price_in_cents"), scraped.get("price_raw"),
    )
    doc = scraped_session_doc(
        scraped,
        camp_id=camp_id,
        location_id=location_id,
        organization_id=organization_id,
        city_id=city_id,
        source_id=source_id,
    )
    doc.update({
        "status": status,
        "completeness_score": validation["completeness_score"],
        "missing_fields": validation["missing_fields"],
        "data_source": "scraped",
    })
    if capacity is not None:
        doc["capacity"] = capacity
    if enrolled_count is not None:
        doc["enrolled_count"] = enrolled_count
    session_id = store.insert_doc("Session", doc)
    return {"session_id": session_id, "status": status, "validation": validation}


def create_pending_session(
    job_id: str,
    source_id: str,
    raw_data: str,
    partial: Dict[str, Any],
    *,
    store=graph_store,
) -> str:
    """Park a scraped session that failed validation for manual review."""
    validation = validate_session(partial)
    return store.insert_doc("PendingSession", {
        "job_id": job_id,
        "source_id": source_id,
        "raw_data": raw_data,
        "partial_data": partial,
        "validation_errors": validation["errors"],
        "completeness_score": validation["completeness_score"],
        "status": "pending_review",
    })


def update_session_price_and_capacity(
    session_id: str,
    price: Optional[int] = None,
    capacity: Optional[int] = None,
    source_id: Optional[str] = None,
    *,
    store=graph_store,
) -> Dict[str, Any]:
    """Refresh price/capacity from a re-scrape. A zero price never overwrites a known one."""
    session = store.get_doc("Session", session_id)
    if not session:
        raise NotFoundError("Session not found")
    patch: Dict[str, Any] = {"last_scraped_at": _now_ms()}
    if price is not None and price > 0:
        patch["price"] = price
    if capacity is not None and capacity >= 0:
        patch["capacity"] = capacity
        status = capacity_status(session.get("status"), int(session.get("enrolled_count") or 0), capacity)
        if status != session.get("status"):
            patch["status"] = status
    if source_id and not session.get("source_id"):
        patch["source_id"] = source_id
    return store.patch_doc("Session", session_id, patch)


def update_source_session_counts(source_id: str, *, store=graph_store) -> Dict[str, Any]:
    _load_source(source_id, store)
    sessions = store.find_docs("Session", {"source_id": source_id})
    active = sum(1 for s in sessions if s.get("status") == "active")
    patch: Dict[str, Any] = {
        "session_count": len(sessions),
        "active_session_count": active,
        "last_session_count_at": _now_ms(),
    }
    if sessions:
        patch["last_sessions_found_at"] = patch["last_session_count_at"]
    store.patch_doc("ScrapeSource", source_id, patch)
    return {"session_count": len(sessions), "active_session_count": active}


def update_source_quality(source_id: str, *, store=graph_store) -> Dict[str, Any]:
    _load_source(source_id, store)
    quality = calculate_source_quality(store.find_docs("Session", {"source_id": source_id}))
    store.patch_doc("ScrapeSource", source_id, {
        "data_quality_score": quality["score"],
        "quality_tier": quality["tier"],
    })
    return quality


def record_url_check(source_id: str, url: str, status_code: Optional[int], ok: bool, *, store=graph_store) -> List[Dict[str, Any]]:
    """Append a URL check to the source's history, keeping the latest entries."""
    source = _load_source(source_id, store)
    history = list(source.get("url_history") or [])
    history.append({"url": url, "status_code": status_code, "ok": bool(ok), "checked_at": _now_ms()})
    history = history[-URL_HISTORY_LIMIT:]
    store.patch_doc("ScrapeSource", source_id, {"url_history": history})
    return history


def suggest_url_update(source_id: str, suggested_url: str, *, store=graph_store) -> None:
    _load_source(source_id, store)
    store.patch_doc("ScrapeSource", source_id, {"suggested_url": suggested_url})


def apply_url_update(source_id: str, *, store=graph_store) -> Optional[str]:
    """Promote the suggested URL. Returns the new URL, or None when nothing was suggested."""
    source = _load_source(source_id, store)
    suggested = source.get("suggested_url")
    if not suggested:
        return None
    store.patch_doc("ScrapeSource", source_id, {"url": suggested, "suggested_url": None})
    logger.info("Source %s moved to %s", source_id, suggested)
    return suggested


def create_zero_price_alert(
    source_id: str,
    zero_price_count: int,
    total_count: int,
    *,
    store=graph_store,
    now_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """Flag a source whose sessions mostly came back at $0, unless a recent open alert exists."""
    source = _load_source(source_id, store)
    now_ms = now_ms if now_ms is not None else _now_ms()
    for alert in store.find_docs("ScrapeAlert", {"source_id": source_id}):
        if (
            alert.get("alert_type") == "scraper_degraded"
            and not alert.get("acknowledged_at")
            and ZERO_PRICE_MARKER in (alert.get("message") or "")
            and (alert.get("created_at") or 0) > now_ms - ALERT_DEDUPE_WINDOW_MS
        ):
            return {"created": False, "reason": "Duplicate alert exists"}

    percent = round(zero_price_count / total_count * 100) if total_count else 0
    alert_id = store.insert_doc("ScrapeAlert", {
        "source_id": source_id,
        "alert_type": "scraper_degraded",
        "message": (
            f'Scraper "{source.get("name")}" has suspicious {ZERO_PRICE_MARKER} pattern: {percent}% of sessions '
            f"({zero_price_count}/{total_count}) have $0 price. Price extraction may be broken."
        ),
        "severity": "warning",
        "created_at": now_ms,
    })
    logger.warning("Zero-price alert for source %s (%d/%d)", source_id, zero_price_count, total_count)
    return {"created": True, "alert_id": alert_id}


def find_sources_with_high_zero_price_ratio(*, store=graph_store) -> List[Dict[str, Any]]:
    """Active sources where more than ``ZERO_PRICE_THRESHOLD`` of sessions cost $0."""
    flagged = []
    for source in store.find_docs("ScrapeSource", {"is_active": True}):
        sessions = store.find_docs("Session", {"source_id": source["id"]})
        if not sessions:
            continue
        zero = sum(1 for s in sessions if s.get("price") == 0)
        ratio = zero / len(sessions)
        if ratio > ZERO_PRICE_THRESHOLD:
            flagged.append({
                "source_id": source["id"],
                "source_name": source.get("name"),
                "zero_price_count": zero,
                "total_count": len(sessions),
                "zero_price_ratio": ratio,
            })
    return flagged


def run_zero_price_check(*, store=graph_store) -> Dict[str, Any]:
    flagged = find_sources_with_high_zero_price_ratio(store=store)
    created = 0
    for issue in flagged:
        res = create_zero_price_alert(issue["source_id"], issue["zero_price_count"], issue["total_count"], store=store)
        created += 1 if res["created"] else 0
    return {"sources_flagged": len(flagged), "alerts_created": created, "sources": flagged}


def list_alerts(source_id: Optional[str] = None, include_acknowledged: bool = False, *, store=graph_store) -> List[Dict[str, Any]]:
    alerts = store.find_docs("ScrapeAlert", {"source_id": source_id} if source_id else None)
    if not include_acknowledged:
        alerts = [a for a in alerts if not a.get("acknowledged_at")]
    return sorted(alerts, key=lambda a: a.get("created_at") or 0, reverse=True)


def acknowledge_alert(alert_id: str, *, store=graph_store) -> Dict[str, Any]:
    if not store.get_doc("ScrapeAlert", alert_id):
        raise NotFoundError("Alert not found")
    return store.patch_doc("ScrapeAlert", alert_id, {"acknowledged_at": _now_ms()})
