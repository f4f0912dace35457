"""Summer coverage grid: for every summer week, how covered each child is.

Sessions and events whose dates do not parse are left out of the grid.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import NotFoundError
from pdxcamps.services.helpers import (
    calculate_age,
    count_overlapping_weekdays,
    do_date_ranges_overlap,
    generate_summer_weeks,
    has_valid_dates,
    is_age_in_range,
    is_grade_in_range,
)

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 5
TENTATIVE_STATUSES = ("interested", "waitlisted")


def coverage_status(event_count: int, event_days: int, covered_days: int, tentative_days: int) -> str:
    if event_count and event_days >= DAYS_PER_WEEK:
        return "event"
    if covered_days >= DAYS_PER_WEEK:
        return "full"
    if covered_days > 0:
        return "partial"
    if tentative_days > 0:
        return "tentative"
    return "gap"


def _eligible(child: Dict[str, Any], age: Optional[int], requirements: Optional[Dict[str, Any]]) -> bool:
    req = requirements or {}
    age_ok = age is None or is_age_in_range(age, req.get("min_age"), req.get("max_age"))
    grade = child.get("current_grade")
    grade_ok = grade is None or is_grade_in_range(int(grade), req.get("min_grade"), req.get("max_grade"))
    return age_ok and grade_ok


def get_summer_coverage(
    family_id: str,
    year: int,
    city_id: Optional[str] = None,
    *,
    store=graph_store,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Build ``[{week, child_coverage, has_gap, has_family_event}]`` for the family's active children.

    ``city_id`` defaults to the family's primary city and scopes the available-session counts.
    """
    family = store.get_doc("Family", family_id)
    if not family:
        raise NotFoundError("Family not found")
    children = [c for c in store.find_docs("Child", {"family_id": family_id}) if c.get("is_active", True)]
    if not children:
        return []

    weeks = generate_summer_weeks(year)
    summer_start, summer_end = weeks[0]["start_date"], weeks[-1]["end_date"]

    registrations = [r for r in store.find_docs("Registration", {"family_id": family_id}) if r.get("status") != "cancelled"]
    sessions: Dict[str, Dict[str, Any]] = {}
    for reg in registrations:
        sid = reg.get("session_id")
        if sid and sid not in sessions:
            session = store.get_doc("Session", sid)
            if session and has_valid_dates(session):
                sessions[sid] = session
            elif session:
                logger.warning("Session %s has unreadable dates, left out of coverage", sid)
    org_names: Dict[str, str] = {}
    for session in sessions.values():
        org_id = session.get("organization_id")
        if org_id and org_id not in org_names:
            org_names[org_id] = store.get_doc("Organization", org_id).get("name") or "Unknown"

    events = [
        e for e in store.find_docs("FamilyEvent", {"family_id": family_id})
        if e.get("is_active", True) and has_valid_dates(e)
        and do_date_ranges_overlap(e["start_date"], e["end_date"], summer_start, summer_end)
    ]

    city_id = city_id or family.get("primary_city_id")
    available: List[Dict[str, Any]] = []
    if city_id:
        available = [
            s for s in store.find_docs("Session", {"city_id": city_id, "status": "active"})
            if int(s.get("capacity") or 0) > int(s.get("enrolled_count") or 0)
            and has_valid_dates(s)
            and do_date_ranges_overlap(s["start_date"], s["end_date"], summer_start, summer_end)
        ]

    ages = {c["id"]: calculate_age(c["birthdate"], today) if c.get("birthdate") else None for c in children}

    grid: List[Dict[str, Any]] = []
    for week in weeks:
        child_coverage = []
        for child in children:
            child_regs = []
            for reg in registrations:
                session = sessions.get(reg.get("session_id"))
                if reg.get("child_id") != child["id"] or not session:
                    continue
                days = count_overlapping_weekdays(session["start_date"], session["end_date"], week["start_date"], week["end_date"])
                if not days:
                    continue
                child_regs.append({
                    "registration_id": reg["id"],
                    "session_id": session["id"],
                    "camp_name": session.get("camp_name") or store.get_doc("Camp", session.get("camp_id")).get("name") or "Unknown Camp",
                    "organization_name": org_names.get(session.get("organization_id"), "Unknown"),
                    "status": reg.get("status"),
                    "overlapping_days": days,
                })
            child_events = []
            for event in events:
                if child["id"] not in (event.get("child_ids") or []):
                    continue
                days = count_overlapping_weekdays(event["start_date"], event["end_date"], week["start_date"], week["end_date"])
                if days:
                    child_events.append({
                        "event_id": event["id"],
                        "title": event.get("title"),
                        "event_type": event.get("event_type"),
                        "overlapping_days": days,
                    })

            registered_days = sum(r["overlapping_days"] for r in child_regs if r["status"] == "registered")
            tentative_days = sum(r["overlapping_days"] for r in child_regs if r["status"] in TENTATIVE_STATUSES)
            event_days = sum(e["overlapping_days"] for e in child_events)
            covered_days = min(DAYS_PER_WEEK, registered_days + event_days)
            status = coverage_status(len(child_events), event_days, covered_days, tentative_days)

            available_count = None
            if status in ("gap", "partial", "tentative"):
                available_count = sum(
                    1 for s in available
                    if do_date_ranges_overlap(s["start_date"], s["end_date"], week["start_date"], week["end_date"])
                    and _eligible(child, ages[child["id"]], s.get("age_requirements"))
                )

            child_coverage.append({
                "child_id": child["id"],
                "child_name": child.get("first_name"),
                "status": status,
                "covered_days": covered_days,
                "available_session_count": available_count,
                "registrations": child_regs,
                "events": child_events,
            })
        grid.append({
            "week": week,
            "child_coverage": child_coverage,
            "has_gap": any(c["status"] == "gap" for c in child_coverage),
            "has_family_event": any(c["events"] for c in child_coverage),
        })
    return grid
