"""Calendar export of saved camps as event lists and iCalendar (RFC 5545) feeds."""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote, urlparse

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import NotFoundError
from pdxcamps.services.helpers import format_price, has_valid_dates, to_date, weekdays_between

CALENDAR_STATUSES = ("interested", "registered")
PRODID = "-//PDX Camps//Camp Calendar//EN"
UID_DOMAIN = "pdxcamps.com"


def escape_ics(text: str) -> str:
    return (
        (text or "")
        .replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def _join_address(address: Optional[Dict[str, Any]]) -> str:
    addr = address or {}
    return ", ".join(str(addr[k]) for k in ("street", "city", "state", "zip") if addr.get(k))


def _build_events(
    registrations: Iterable[Dict[str, Any]],
    store,
    *,
    detailed: bool = True,
) -> List[Dict[str, Any]]:
    events: List[Dict[str, Any]] = []
    for reg in registrations:
        session = store.get_doc("Session", reg.get("session_id"))
        if not session or session.get("status") != "active" or not has_valid_dates(session):
            continue
        child = store.get_doc("Child", reg.get("child_id"))
        camp_name = session.get("camp_name") or "Camp"
        child_name = child.get("first_name") or ""
        location = store.get_doc("Location", session.get("location_id"))
        location_str = _join_address(location.get("address")) or session.get("location_name") or ""

        description = f"Org: {session.get('organization_name') or ''}"
        if detailed:
            price = int(session.get("price") or 0)
            lines = [
                description,
                f"Price: {format_price(price, session.get('currency') or 'USD')}" if price > 0 else "Free",
                "Status: Registered" if reg.get("status") == "registered" else "Status: Interested",
            ]
            if session.get("external_registration_url"):
                lines.append(f"Register: {session['external_registration_url']}")
            description = "\n".join(lines)

        events.append({
            "id": reg["id"],
            "title": f"{camp_name} - {child_name}" if child_name else camp_name,
            "child_id": reg.get("child_id"),
            "start_date": session.get("start_date"),
            "end_date": session.get("end_date"),
            "start_time": session.get("drop_off_time") or {"hour": 9, "minute": 0},
            "end_time": session.get("pick_up_time") or {"hour": 15, "minute": 0},
            "location": location_str,
            "description": description,
            "status": reg.get("status"),
        })
    events.sort(key=lambda e: e["start_date"] or "")
    return events


def get_calendar_events(family_id: str, child_id: Optional[str] = None, *, store=graph_store) -> List[Dict[str, Any]]:
    """Interested and registered camps of a family, optionally for one child."""
    regs = [
        r for r in store.find_docs("Registration", {"family_id": family_id})
        if r.get("status") in CALENDAR_STATUSES and (child_id is None or r.get("child_id") == child_id)
    ]
    return _build_events(regs, store)


def get_share(share_token: str, *, store=graph_store) -> Dict[str, Any]:
    found = store.find_docs("FamilyShare", {"share_token": share_token}, limit=1)
    if not found:
        raise NotFoundError("Calendar not found")
    return found[0]


def get_calendar_events_by_token(share_token: str, *, store=graph_store) -> List[Dict[str, Any]]:
    """Events visible through a share link. Only the shared children are included."""
    share = get_share(share_token, store=store)
    if not store.get_doc("Family", share.get("family_id")):
        return []
    child_ids = set(share.get("child_ids") or [])
    regs = [
        r for r in store.find_docs("Registration", {"family_id": share["family_id"]})
        if r.get("status") in CALENDAR_STATUSES and r.get("child_id") in child_ids
    ]
    return _build_events(regs, store, detailed=False)


def get_family_events(family_id: str, child_ids: Optional[Iterable[str]] = None, *, store=graph_store) -> List[Dict[str, Any]]:
    wanted = set(child_ids) if child_ids is not None else None
    return [
        e for e in store.find_docs("FamilyEvent", {"family_id": family_id})
        if e.get("is_active", True) and (wanted is None or wanted & set(e.get("child_ids") or []))
    ]


def _hhmm(t: Dict[str, Any]) -> str:
    return f"{int(t.get('hour') or 0):02d}{int(t.get('minute') or 0):02d}"


def _status_prefix(status: Optional[str]) -> str:
    if status == "registered":
        return ""
    if status == "waitlisted":
        return "[WAITLIST] "
    return "[INTERESTED] "


def generate_ics(
    calendar_name: str,
    events: Iterable[Dict[str, Any]],
    family_events: Iterable[Dict[str, Any]] = (),
    *,
    now: Optional[datetime] = None,
) -> str:
    """Render events as an iCalendar document.

    Camp sessions become one timed VEVENT per weekday (floating local time).
    Family events become all-day VEVENTs with an exclusive end date.
    """
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{escape_ics(calendar_name)}'s Summer Camps",
        f"X-WR-CALDESC:{escape_ics(f'Camp schedule for {calendar_name}')}",
    ]
    for event in events:
        start_hm = _hhmm(event.get("start_time") or {})
        end_hm = _hhmm(event.get("end_time") or {})
        for day in weekdays_between(event["start_date"], event["end_date"]):
            ymd = day.strftime("%Y%m%d")
            lines.extend([
                "BEGIN:VEVENT",
                f"UID:{event['id']}-{ymd}@{UID_DOMAIN}",
                f"DTSTAMP:{stamp}",
                f"DTSTART:{ymd}T{start_hm}00",
                f"DTEND:{ymd}T{end_hm}00",
                f"SUMMARY:{escape_ics(_status_prefix(event.get('status')) + (event.get('title') or 'Camp'))}",
            ])
            if event.get("description"):
                lines.append(f"DESCRIPTION:{escape_ics(event['description'])}")
            if event.get("location"):
                lines.append(f"LOCATION:{escape_ics(event['location'])}")
            lines.append("END:VEVENT")

    for fe in family_events:
        end_exclusive = to_date(fe["end_date"]) + timedelta(days=1)
        lines.extend([
            "BEGIN:VEVENT",
            f"UID:{fe['id']}@{UID_DOMAIN}",
            f"DTSTAMP:{stamp}",
            f"DTSTART;VALUE=DATE:{to_date(fe['start_date']).strftime('%Y%m%d')}",
            f"DTEND;VALUE=DATE:{end_exclusive.strftime('%Y%m%d')}",
            f"SUMMARY:{escape_ics(fe.get('title') or '')}",
        ])
        if fe.get("location"):
            lines.append(f"LOCATION:{escape_ics(fe['location'])}")
        lines.append("END:VEVENT")

    lines.append("END:VCALENDAR")
    return "\r\n".join(lines)


def ics_for_share(share_token: str, *, store=graph_store) -> Dict[str, str]:
    """ICS feed behind a share link, named after the first shared child."""
    share = get_share(share_token, store=store)
    child_ids = share.get("child_ids") or []
    names = [store.get_doc("Child", cid).get("first_name") for cid in child_ids]
    child_name = next((n for n in names if n), "My Family")
    events = get_calendar_events_by_token(share_token, store=store)
    family_events = get_family_events(share["family_id"], child_ids, store=store)
    return {"filename": f"{child_name}-camps.ics", "content": generate_ics(child_name, events, family_events)}


def subscription_links(base_url: str, share_token: str) -> Dict[str, str]:
    """Feed URLs for calendar apps: plain https, webcal:// and a Google Calendar subscribe link."""
    parsed = urlparse(base_url.rstrip("/"))
    path = f"{parsed.path}/calendar/{share_token}.ics"
    https_url = f"{parsed.scheme or 'https'}://{parsed.netloc}{path}"
    webcal_url = f"webcal://{parsed.netloc}{path}"
    return {
        "ics_url": https_url,
        "webcal_url": webcal_url,
        "google_url": f"https://calendar.google.com/calendar/r?cid={quote(webcal_url, safe='')}",
    }
