"""Session cleanup: duplicate merging, malformed dates and stale data.

Two sessions are duplicates when they share camp, location, start date and end
date. The best-scoring one survives; registrations on the others move to it.
"""
import json
import logging
import re
import time
from typing import Any, Dict, List, Optional, Tuple

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import NotFoundError
from pdxcamps.services.registration_service import compact_waitlist, update_session_counts

logger = logging.getLogger(__name__)

DEFAULT_CUTOFF_DATE = "2025-01-01"
_DAY_MS = 1000 * 60 * 60 * 24
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def session_dedupe_key(session: Dict[str, Any]) -> str:
    return "|".join(str(session.get(k)) for k in ("camp_id", "location_id", "start_date", "end_date"))


def score_session(session: Dict[str, Any], now_ms: Optional[int] = None) -> float:
    """Higher is better: live status, a real price, completeness, freshness, links."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    score = 0.0
    if session.get("status") == "active":
        score += 100
    elif session.get("status") == "draft":
        score += 50
    if (session.get("price") or 0) > 0:
        score += 50
    score += session.get("completeness_score") or 0
    if session.get("last_scraped_at"):
        age_days = (now_ms - session["last_scraped_at"]) / _DAY_MS
        score += max(0.0, 30 - age_days)
    if session.get("external_registration_url"):
        score += 20
    if session.get("description"):
        score += 10
    return score


def _sessions(city_id: Optional[str], store) -> List[Dict[str, Any]]:
    return store.find_docs("Session", {"city_id": city_id} if city_id else None)


def _duplicate_groups(sessions: List[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
    by_key: Dict[str, List[Dict[str, Any]]] = {}
    for s in sessions:
        by_key.setdefault(session_dedupe_key(s), []).append(s)
    return [group for group in by_key.values() if len(group) > 1]


def find_duplicate_sessions(city_id: Optional[str] = None, *, store=graph_store) -> Dict[str, Any]:
    sessions = _sessions(city_id, store)
    groups = []
    for group in _duplicate_groups(sessions):
        groups.append({
            "key": session_dedupe_key(group[0]),
            "count": len(group),
            "sessions": [
                {
                    "id": s["id"],
                    "camp_name": s.get("camp_name") or "Unknown",
                    "start_date": s.get("start_date"),
                    "end_date": s.get("end_date"),
                    "price": s.get("price"),
                    "status": s.get("status"),
                    "completeness_score": s.get("completeness_score"),
                    "last_scraped_at": s.get("last_scraped_at"),
                    "source_id": s.get("source_id"),
                }
                for s in group
            ],
        })
    groups.sort(key=lambda g: -g["count"])
    return {
        "total_sessions": len(sessions),
        "duplicate_groups": len(groups),
        "total_duplicates_to_remove": sum(g["count"] - 1 for g in groups),
        "groups": groups[:50],
    }


# how far a registration has progressed; a merge keeps the further one
REGISTRATION_RANK = {"cancelled": 0, "interested": 1, "waitlisted": 2, "registered": 3}


def _seat(status: Optional[str]) -> Tuple[int, int]:
    """(enrolled, waitlisted) contribution of a registration status to its session."""
    if status == "registered":
        return 1, 0
    if status == "waitlisted":
        return 0, 1
    return 0, 0


def _move_registrations(keep: Dict[str, Any], dup: Dict[str, Any], dry_run: bool, store) -> int:
    """Move registrations from ``dup`` to ``keep``. Returns how many were handled.

    When the child already has a row on the keeper, the row with the further
    status survives on the keeper and the other is deleted. Keeper counters
    follow whatever status ends up there.
    """
    regs = store.find_docs("Registration", {"session_id": dup["id"]})
    if dry_run:
        return len(regs)
    for reg in regs:
        status = reg.get("status")
        held = store.find_docs("Registration", {"child_id": reg.get("child_id"), "session_id": keep["id"]})
        target = held[0] if held else None
        previous = target.get("status") if target else None
        if target and REGISTRATION_RANK.get(status, 0) <= REGISTRATION_RANK.get(previous, 0):
            store.delete_doc("Registration", reg["id"])
            continue

        enrolled_in, waiting_in = _seat(status)
        enrolled_out, waiting_out = _seat(previous)
        if (enrolled_in, waiting_in) != (enrolled_out, waiting_out):
            keep.update(update_session_counts(
                keep["id"], enrolled_in - enrolled_out, waiting_in - waiting_out, store=store,
            ))
        patch: Dict[str, Any] = {
            "status": status,
            "waitlist_position": int(keep.get("waitlist_count") or 0) if status == "waitlisted" else None,
        }
        if status == "registered":
            patch["registered_at"] = reg.get("registered_at")

        if target:
            store.patch_doc("Registration", target["id"], patch)
            store.delete_doc("Registration", reg["id"])
            if previous == "waitlisted":
                compact_waitlist(keep["id"], store=store)
            logger.info("Registration %s on session %s upgraded %s -> %s by merge", target["id"], keep["id"], previous, status)
        else:
            patch["session_id"] = keep["id"]
            store.patch_doc("Registration", reg["id"], patch)
    return len(regs)


def merge_duplicate_sessions(
    dry_run: bool = True,
    city_id: Optional[str] = None,
    limit: int = 1000,
    *,
    store=graph_store,
    now_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """Keep the best session of each duplicate group and delete the rest.

    At most ``limit`` groups are processed per call.
    """
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    sessions = _sessions(city_id, store)
    merged = 0
    deleted = 0
    moved = 0
    samples: List[Dict[str, Any]] = []
    for group in _duplicate_groups(sessions):
        if merged >= limit:
            break
        ranked = sorted(group, key=lambda s: score_session(s, now_ms), reverse=True)
        keep, duplicates = ranked[0], ranked[1:]
        for dup in duplicates:
            moved += _move_registrations(keep, dup, dry_run, store)
            if not dry_run:
                store.delete_doc("Session", dup["id"])
            deleted += 1
        samples.append({
            "kept_id": keep["id"],
            "deleted_ids": [d["id"] for d in duplicates],
            "camp_name": keep.get("camp_name") or "Unknown",
        })
        merged += 1
    if not dry_run and merged:
        logger.info("Merged %d duplicate session group(s), deleted %d session(s)", merged, deleted)
    return {
        "dry_run": dry_run,
        "total_sessions": len(sessions),
        "duplicate_groups_merged": merged,
        "sessions_deleted": deleted,
        "registrations_reassigned": moved,
        "sample_merges": samples[:20],
    }


def auto_deduplicate_sessions(*, store=graph_store) -> Dict[str, Any]:
    """Unattended merge run with a smaller per-call limit."""
    return merge_duplicate_sessions(dry_run=False, limit=500, store=store)


def _has_placeholder_date(value: Optional[str]) -> bool:
    return bool(value) and ("UNKNOWN" in value or "<" in value)


def _has_bad_date_format(value: Optional[str]) -> bool:
    return bool(value) and not _ISO_DATE_RE.match(value)


def session_date_issues(session: Dict[str, Any]) -> List[str]:
    issues: List[str] = []
    for field in ("start_date", "end_date"):
        value = session.get(field)
        if _has_placeholder_date(value):
            issues.append(f"Bad {field}: {value}")
        if _has_bad_date_format(value):
            issues.append(f"Invalid {field} format: {value}")
    return issues


def find_bad_sessions(*, store=graph_store) -> Dict[str, Any]:
    sessions = store.find_docs("Session")
    bad = []
    for s in sessions:
        issues = session_date_issues(s)
        if s.get("start_date") and s["start_date"] < DEFAULT_CUTOFF_DATE:
            issues.append(f"Past date: {s['start_date']}")
        if (s.get("drop_off_time") or {}).get("hour") is None:
            issues.append("Missing drop_off_time")
        if (s.get("pick_up_time") or {}).get("hour") is None:
            issues.append("Missing pick_up_time")
        if issues:
            bad.append({"id": s["id"], "camp_id": s.get("camp_id"), "issues": issues})
    return {"total_sessions": len(sessions), "bad_session_count": len(bad), "bad_sessions": bad[:50]}


def delete_bad_sessions(dry_run: bool = True, *, store=graph_store) -> Dict[str, Any]:
    """Delete sessions whose dates are placeholders or not YYYY-MM-DD."""
    doomed = [s["id"] for s in store.find_docs("Session") if session_date_issues(s)]
    if not dry_run:
        for sid in doomed:
            store.delete_doc("Session", sid)
    return {"dry_run": dry_run, "deleted": len(doomed), "deleted_ids": doomed[:50]}


def delete_old_sessions(cutoff_date: str = DEFAULT_CUTOFF_DATE, dry_run: bool = True, *, store=graph_store) -> Dict[str, Any]:
    doomed = [s["id"] for s in store.find_docs("Session") if s.get("start_date") and s["start_date"] < cutoff_date]
    if not dry_run:
        for sid in doomed:
            store.delete_doc("Session", sid)
    return {"dry_run": dry_run, "cutoff_date": cutoff_date, "deleted": len(doomed), "deleted_ids": doomed[:50]}


def trace_session_source(session_id: str, *, store=graph_store) -> Dict[str, Any]:
    """Follow a session back to the camp, organization, location and scrape source it came from."""
    session = store.get_doc("Session", session_id)
    if not session:
        raise NotFoundError("Session not found")
    camp = store.get_doc("Camp", session.get("camp_id"))
    location = store.get_doc("Location", session.get("location_id"))
    organization = store.get_doc("Organization", session.get("organization_id"))
    source = store.get_doc("ScrapeSource", session.get("source_id"))

    jobs: List[Dict[str, Any]] = []
    samples: List[Dict[str, Any]] = []
    if source:
        jobs = sorted(store.find_docs("ScrapeJob", {"source_id": source["id"]}), key=lambda j: j.get("created_at") or 0, reverse=True)[:5]
        for job in jobs:
            raw = store.find_docs("ScrapeRawData", {"job_id": job["id"]})
            if raw:
                preview = raw[0].get("raw_json") or ""
                if not isinstance(preview, str):
                    preview = json.dumps(preview, ensure_ascii=False)
                samples.append({"job_id": job["id"], "preview": preview[:500]})

    return {
        "session": {
            "id": session["id"],
            "start_date": session.get("start_date"),
            "end_date": session.get("end_date"),
            "external_registration_url": session.get("external_registration_url"),
            "status": session.get("status"),
            "created_at": session.get("created_at"),
        },
        "camp": {"id": camp["id"], "name": camp.get("name"), "website": camp.get("website"), "image_urls": camp.get("image_urls")} if camp else None,
        "location": {"id": location["id"], "name": location.get("name"), "address": location.get("address")} if location else None,
        "organization": {"id": organization["id"], "name": organization.get("name"), "website": organization.get("website")} if organization else None,
        "source": {"id": source["id"], "name": source.get("name"), "url": source.get("url")} if source else None,
        "recent_jobs": [
            {"id": j["id"], "status": j.get("status"), "sessions_found": j.get("sessions_found"), "completed_at": j.get("completed_at")}
            for j in jobs
        ],
        "raw_data_samples": samples,
    }
