"""Turn stored scrape results into organizations, camps, locations and sessions.

A scrape job's raw data is ``{"result": {"success", "sessions", "organization", "scraped_at"}}``
where each session uses the scraped-session keys of ``validation_service``.
"""
import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from pdxcamps.services import graph as graph_store
from pdxcamps.services.dedup_service import find_existing_session, generate_dedupe_key, update_existing_session
from pdxcamps.services.helpers import DEFAULT_LATITUDE, DEFAULT_LONGITUDE, slugify
from pdxcamps.services.scrape_service import (
    PENDING_SCORE_THRESHOLD,
    create_pending_session,
    create_session_with_completeness,
)
from pdxcamps.services.validation_service import is_valid_date_format, validate_session

logger = logging.getLogger(__name__)

DEFAULT_CITY_SLUG = "portland"
DEFAULT_LOCATION_NAME = "Main Location"
DEFAULT_ADDRESS = {"street": "TBD", "city": "Portland", "state": "OR", "zip": "97201"}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _failure(message: str, **counts: int) -> Dict[str, Any]:
    summary = {
        "success": False,
        "camps_created": 0,
        "sessions_created": 0,
        "sessions_updated": 0,
        "sessions_pending": 0,
        "locations_created": 0,
    }
    summary.update(counts)
    summary["errors"] = [message]
    return summary


def load_raw_result(raw_doc: Dict[str, Any]) -> Dict[str, Any]:
    raw = raw_doc.get("raw_json")
    data = json.loads(raw) if isinstance(raw, str) else (raw or {})
    return data.get("result") or {}


def _resolve_city(source: Dict[str, Any], store) -> Dict[str, Any]:
    if source.get("city_id"):
        city = store.get_doc("City", source["city_id"])
        if city:
            return city
    found = store.find_docs("City", {"slug": DEFAULT_CITY_SLUG}, limit=1)
    return found[0] if found else {}


def create_organization(
    name: str,
    city_id: str,
    *,
    description: Optional[str] = None,
    website: Optional[str] = None,
    logo_url: Optional[str] = None,
    store=graph_store,
) -> str:
    return store.insert_doc("Organization", {
        "name": name,
        "slug": slugify(name),
        "description": description,
        "website": website,
        "logo_url": logo_url,
        "city_ids": [city_id],
        "is_verified": False,
        "is_active": True,
    })


def create_camp_from_scrape(organization_id: str, first: Dict[str, Any], *, store=graph_store) -> str:
    name = first.get("name") or "Untitled camp"
    return store.insert_doc("Camp", {
        "organization_id": organization_id,
        "name": name,
        "slug": slugify(name),
        "description": first.get("description") or f"{name} camp",
        "categories": [first["category"]] if first.get("category") else ["General"],
        "age_requirements": {
            "min_age": first.get("min_age"),
            "max_age": first.get("max_age"),
            "min_grade": first.get("min_grade"),
            "max_grade": first.get("max_grade"),
        },
        "website": first.get("registration_url"),
        "image_urls": first.get("image_urls") or [],
        "image_storage_ids": [],
        "is_active": True,
    })


def create_location(
    organization_id: str,
    name: str,
    city_id: str,
    *,
    address: Optional[Dict[str, Any]] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    store=graph_store,
) -> str:
    """Create a location; missing address parts and coordinates get Portland placeholders."""
    addr = dict(DEFAULT_ADDRESS)
    addr.update({k: v for k, v in (address or {}).items() if v})
    return store.insert_doc("Location", {
        "organization_id": organization_id,
        "name": name,
        "address": addr,
        "city_id": city_id,
        "latitude": latitude if latitude is not None else DEFAULT_LATITUDE,
        "longitude": longitude if longitude is not None else DEFAULT_LONGITUDE,
        "is_active": True,
    })


def _find_or_create_camp(organization_id: str, first: Dict[str, Any], store) -> Tuple[str, bool]:
    name = first.get("name") or "Untitled camp"
    found = store.find_docs("Camp", {"organization_id": organization_id, "name": name}, limit=1)
    if found:
        return found[0]["id"], False
    return create_camp_from_scrape(organization_id, first, store=store), True


def _find_or_create_location(organization_id: str, name: str, city_id: str, store) -> Tuple[str, bool]:
    found = store.find_docs("Location", {"organization_id": organization_id, "name": name}, limit=1)
    if found:
        return found[0]["id"], False
    return create_location(organization_id, name, city_id, store=store), True


def _bad_dates(scraped: Dict[str, Any]) -> List[str]:
    return [
        f"{field}={scraped[field]!r}"
        for field in ("start_date", "end_date")
        if scraped.get(field) and not is_valid_date_format(scraped[field])
    ]


def import_from_job(job_id: str, *, store=graph_store) -> Dict[str, Any]:
    """Import the raw result of one scrape job.

    Each scraped session ends up in one of four places:

    - skipped, when it has no start date or repeats an earlier row of the job;
    - a ``PendingSession``, when a date is unreadable or completeness is below
      ``PENDING_SCORE_THRESHOLD``;
    - an update of the matching session from an earlier import;
    - a new session carrying its completeness score.

    Failures are reported in the returned ``errors`` list rather than raised.
    """
    errors: List[str] = []
    camps_created = 0
    sessions_created = 0
    sessions_updated = 0
    sessions_pending = 0
    locations_created = 0

    raw_docs = store.find_docs("ScrapeRawData", {"job_id": job_id}, limit=1)
    if not raw_docs or not raw_docs[0].get("raw_json"):
        return _failure("No raw data found")
    raw_doc = raw_docs[0]
    try:
        result = load_raw_result(raw_doc)
    except ValueError as exc:
        return _failure(f"Unreadable raw data: {exc}")
    if not result.get("success") or not result.get("sessions"):
        return _failure("No sessions in scrape result")

    source_id = raw_doc.get("source_id")
    source = store.get_doc("ScrapeSource", source_id)
    if not source:
        return _failure("Source not found")
    city = _resolve_city(source, store)
    if not city:
        return _failure("City not found")

    organization_id = source.get("organization_id")
    if not organization_id:
        org_data = result.get("organization") or {"name": source.get("name"), "website": source.get("url")}
        organization_id = create_organization(
            org_data.get("name") or source.get("name") or "Unknown organization",
            city["id"],
            description=org_data.get("description"),
            website=org_data.get("website"),
            logo_url=org_data.get("logo_url"),
            store=store,
        )
        store.patch_doc("ScrapeSource", source_id, {"organization_id": organization_id})
        logger.info("Created organization %s for source %s", organization_id, source_id)

    by_theme: Dict[str, List[Dict[str, Any]]] = {}
    for scraped in result["sessions"]:
        by_theme.setdefault(scraped.get("source_product_id") or scraped.get("name") or "", []).append(scraped)

    location_cache: Dict[str, str] = {}
    seen_keys = set()
    for sessions in by_theme.values():
        camp_id, created = _find_or_create_camp(organization_id, sessions[0], store)
        camps_created += int(created)
        for scraped in sessions:
            name = scraped.get("name") or ""
            location_name = scraped.get("location") or DEFAULT_LOCATION_NAME
            if location_name not in location_cache:
                location_cache[location_name], created = _find_or_create_location(
                    organization_id, location_name, city["id"], store,
                )
                locations_created += int(created)
            start = scraped.get("start_date")
            if not start:
                continue
            key = generate_dedupe_key(source_id, name, start)
            if key in seen_keys:
                continue
            seen_keys.add(key)

            bad = _bad_dates(scraped)
            validation = validate_session(scraped)
            if bad or validation["completeness_score"] < PENDING_SCORE_THRESHOLD:
                create_pending_session(job_id, source_id, json.dumps(scraped, ensure_ascii=False), scraped, store=store)
                sessions_pending += 1
                if bad:
                    errors.append(f"Session {name}: unreadable date ({', '.join(bad)}), held for review")
                continue
            try:
                existing = find_existing_session(source_id, name, start, store=store)
                if existing:
                    update_existing_session(existing["id"], dict(
                        scraped,
                        completeness_score=validation["completeness_score"],
                        missing_fields=validation["missing_fields"],
                    ), store=store)
                    sessions_updated += 1
                    continue
                create_session_with_completeness(
                    scraped,
                    camp_id=camp_id,
                    location_id=location_cache[location_name],
                    organization_id=organization_id,
                    city_id=city["id"],
                    source_id=source_id,
                    store=store,
                )
                sessions_created += 1
            except (ValueError, RuntimeError) as exc:
                errors.append(f"Session {name}: {exc}")

    logger.info(
        "Imported job %s: %d camp(s), %d new / %d updated / %d pending session(s), %d location(s)",
        job_id, camps_created, sessions_created, sessions_updated, sessions_pending, locations_created,
    )
    return {
        "success": True,
        "organization_id": organization_id,
        "camps_created": camps_created,
        "sessions_created": sessions_created,
        "sessions_updated": sessions_updated,
        "sessions_pending": sessions_pending,
        "locations_created": locations_created,
        "errors": errors[:20],
    }


def import_from_source(source_id: str, *, store=graph_store) -> Dict[str, Any]:
    """Import the most recent completed job of a source."""
    jobs = store.find_docs("ScrapeJob", {"source_id": source_id, "status": "completed"})
    if not jobs:
        return {"success": False, "error": "No completed jobs found for this source"}
    latest = max(jobs, key=lambda j: (j.get("completed_at") or 0, j.get("created_at") or 0))
    return import_from_job(latest["id"], store=store)


def create_scrape_job(source_id: str, result: Dict[str, Any], *, store=graph_store) -> str:
    """Record a finished scrape run and its raw result. Returns the job id."""
    now = _now_ms()
    job_id = store.insert_doc("ScrapeJob", {
        "source_id": source_id,
        "status": "completed",
        "started_at": now,
        "completed_at": now,
        "sessions_found": len(result.get("sessions") or []),
    })
    store.insert_doc("ScrapeRawData", {
        "job_id": job_id,
        "source_id": source_id,
        "raw_json": json.dumps({"result": result}, ensure_ascii=False),
    })
    return job_id
