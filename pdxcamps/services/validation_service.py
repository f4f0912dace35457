"""Completeness checks and text parsers for scraped camp sessions.

A scraped session is a plain dict produced by a spider. The keys used here are:

    name, description, category, location, registration_url, source_product_id
    start_date, end_date, date_raw
    drop_off_hour, drop_off_minute, pick_up_hour, pick_up_minute, time_raw
    price_in_cents, price_raw
    min_age, max_age, min_grade, max_grade, age_grade_raw

Seven fields are required before a session can go live (``REQUIRED_FIELDS``).
The completeness score is the percentage of them present.
"""
import re
from datetime import date
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

REQUIRED_FIELDS = (
    "start_date",
    "end_date",
    "drop_off_time",
    "pick_up_time",
    "location",
    "age_requirements",
    "price",
)

PLACEHOLDER_MARKERS = ("<UNKNOWN>", "UNKNOWN", "TBD", "N/A", "NULL", "UNDEFINED")
GENERIC_LOCATIONS = {"main location", "tbd", "unknown", "n/a", "online", "various"}
MAX_SESSION_DAYS = 21

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_STREET_RE = re.compile(r"\d+\s+[A-Za-z]")

MONTHS = {
    name: i + 1
    for i, names in enumerate(
        [
            ("january", "jan"), ("february", "feb"), ("march", "mar"), ("april", "apr"),
            ("may",), ("june", "jun"), ("july", "jul"), ("august", "aug"),
            ("september", "sep", "sept"), ("october", "oct"), ("november", "nov"), ("december", "dec"),
        ]
    )
    for name in names
}


def is_placeholder(value: Any) -> bool:
    if value is None or value == "":
        return False
    upper = str(value).upper()
    return any(marker in upper for marker in PLACEHOLDER_MARKERS)


def is_valid_date_format(value: Any) -> bool:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_hour(hour: Any) -> bool:
    return isinstance(hour, int) and not isinstance(hour, bool) and 0 <= hour <= 23


def is_valid_url(value: str) -> bool:
    parsed = urlparse(value or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _error(field: str, error: str, value: Any = None) -> Dict[str, Any]:
    err: Dict[str, Any] = {"field": field, "error": error}
    if value is not None:
        err["value"] = str(value)
    return err


def validate_session(session: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a scraped session.

    Returns ``{is_complete, completeness_score, missing_fields, errors}``; each
    error is ``{field, error, value}``.
    """
    missing: List[str] = []
    errors: List[Dict[str, Any]] = []

    start = session.get("start_date")
    end = session.get("end_date")
    if not start or is_placeholder(start):
        missing.append("start_date")
        if session.get("date_raw"):
            errors.append(_error("start_date", "Could not parse start date from raw text", session["date_raw"]))
    elif not is_valid_date_format(start):
        errors.append(_error("start_date", "Invalid date format (expected YYYY-MM-DD)", start))

    if not end or is_placeholder(end):
        missing.append("end_date")
    elif not is_valid_date_format(end):
        errors.append(_error("end_date", "Invalid date format (expected YYYY-MM-DD)", end))

    if is_valid_date_format(start) and is_valid_date_format(end):
        days = (date.fromisoformat(end) - date.fromisoformat(start)).days
        if days < 0:
            errors.append(_error("date_range", "End date is before start date", f"{start} to {end}"))
        elif days > MAX_SESSION_DAYS:
            errors.append(_error(
                "date_range",
                f"Session spans {days} days - likely a program overview, not a single session (max {MAX_SESSION_DAYS})",
                f"{start} to {end}",
            ))

    reg_url = session.get("registration_url")
    if reg_url and not is_valid_url(reg_url):
        errors.append(_error("registration_url", "Registration URL is not a valid HTTP/HTTPS URL", reg_url))

    if session.get("drop_off_hour") is None:
        missing.append("drop_off_time")
        if session.get("time_raw"):
            errors.append(_error("drop_off_time", "Could not parse drop-off time from raw text", session["time_raw"]))
    elif not is_valid_hour(session["drop_off_hour"]):
        errors.append(_error("drop_off_time", "Invalid hour (expected 0-23)", session["drop_off_hour"]))

    if session.get("pick_up_hour") is None:
        missing.append("pick_up_time")
    elif not is_valid_hour(session["pick_up_hour"]):
        errors.append(_error("pick_up_time", "Invalid hour (expected 0-23)", session["pick_up_hour"]))

    location = session.get("location")
    if not location:
        missing.append("location")
    else:
        generic = location.strip().lower() in GENERIC_LOCATIONS
        if generic or (not _STREET_RE.search(location) and len(location) < 20):
            errors.append(_error("location", "Location appears incomplete or generic - should include street address", location))
        commas = location.count(",")
        if commas >= 3 and len(location) > 100:
            errors.append(_error(
                "location",
                f"Location appears to be a list of {commas + 1} venues - should be a single location",
                location[:100] + "...",
            ))

    has_age = session.get("min_age") is not None or session.get("max_age") is not None
    has_grade = session.get("min_grade") is not None or session.get("max_grade") is not None
    if not has_age and not has_grade:
        missing.append("age_requirements")
        if session.get("age_grade_raw"):
            errors.append(_error("age_requirements", "Could not parse age/grade from raw text", session["age_grade_raw"]))

    # 0 is a valid (free) price
    if session.get("price_in_cents") is None:
        missing.append("price")
        if session.get("price_raw"):
            errors.append(_error("price", "Could not parse price from raw text", session["price_raw"]))

    total = len(REQUIRED_FIELDS)
    score = round((total - len(missing)) / total * 100)
    return {
        "is_complete": not missing and not errors,
        "completeness_score": score,
        "missing_fields": missing,
        "errors": errors,
    }


def calculate_source_quality(sessions: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Average completeness over a source's sessions, bucketed into a tier."""
    rows = list(sessions)
    if not rows:
        return {"score": 0, "tier": "low", "total_sessions": 0, "complete_sessions": 0, "common_missing_fields": []}
    avg = sum(r.get("completeness_score") or 0 for r in rows) / len(rows)
    tier = "high" if avg >= 80 else "medium" if avg >= 50 else "low"
    missing_counts: Dict[str, int] = {}
    for r in rows:
        for f in r.get("missing_fields") or []:
            missing_counts[f] = missing_counts.get(f, 0) + 1
    common = sorted(missing_counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return {
        "score": round(avg),
        "tier": tier,
        "total_sessions": len(rows),
        "complete_sessions": sum(1 for r in rows if (r.get("completeness_score") or 0) == 100),
        "common_missing_fields": [{"field": f, "count": c} for f, c in common],
    }


def determine_session_status(completeness_score: int, price_in_cents: Optional[int] = None, price_raw: Optional[str] = None) -> str:
    """Pick the initial status for an imported session.

    A $0 price without the word "free" in the raw text is treated as a parse
    failure and keeps the session in draft.
    """
    if completeness_score < 50:
        return "pending_review"
    if price_in_cents == 0 and not (price_raw and re.search(r"\bfree\b", price_raw, re.I)):
        return "draft"
    return "active" if completeness_score == 100 else "draft"


def parse_date_range(text: str) -> Optional[Dict[str, str]]:
    """Parse "June 10-14, 2025", "June 30 - July 3, 2025" or "6/10/2025 - 6/14/2025"."""
    if not text:
        return None
    t = text.strip().lower()

    m = re.search(r"([a-z]+)\.?\s+(\d{1,2})\s*[-–]\s*([a-z]+)\.?\s+(\d{1,2}),?\s*(\d{4})", t)
    if m and m.group(1) in MONTHS and m.group(3) in MONTHS:
        year = int(m.group(5))
        return {
            "start_date": f"{year}-{MONTHS[m.group(1)]:02d}-{int(m.group(2)):02d}",
            "end_date": f"{year}-{MONTHS[m.group(3)]:02d}-{int(m.group(4)):02d}",
        }

    m = re.search(r"([a-z]+)\.?\s+(\d{1,2})\s*[-–]\s*(\d{1,2}),?\s*(\d{4})", t)
    if m:
        month = MONTHS.get(m.group(1))
        if month is None:
            return None
        year = int(m.group(4))
        return {
            "start_date": f"{year}-{month:02d}-{int(m.group(2)):02d}",
            "end_date": f"{year}-{month:02d}-{int(m.group(3)):02d}",
        }

    m = re.search(r"(\d{1,2})/(\d{1,2})/(\d{4})\s*[-–]\s*(\d{1,2})/(\d{1,2})/(\d{4})", t)
    if m:
        return {
            "start_date": f"{m.group(3)}-{int(m.group(1)):02d}-{int(m.group(2)):02d}",
            "end_date": f"{m.group(6)}-{int(m.group(4)):02d}-{int(m.group(5)):02d}",
        }
    return None


def parse_time_range(text: str) -> Optional[Dict[str, int]]:
    """Parse "9:00 AM - 3:00 PM", "9am-3pm" or "9-3" into 24-hour parts."""
    if not text:
        return None
    m = re.search(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\s*[-–]\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?", text, re.I)
    if not m:
        return None
    drop_hour = int(m.group(1))
    drop_min = int(m.group(2) or 0)
    drop_period = (m.group(3) or "").lower()
    pick_hour = int(m.group(4))
    pick_min = int(m.group(5) or 0)
    pick_period = (m.group(6) or "").lower()

    if drop_period == "pm" and drop_hour != 12:
        drop_hour += 12
    if drop_period == "am" and drop_hour == 12:
        drop_hour = 0
    if pick_period == "pm" and pick_hour != 12:
        pick_hour += 12
    if pick_period == "am" and pick_hour == 12:
        pick_hour = 0
    # no period: an early pick-up hour means afternoon
    if not pick_period and pick_hour < 6:
        pick_hour += 12

    return {
        "drop_off_hour": drop_hour,
        "drop_off_minute": drop_min,
        "pick_up_hour": pick_hour,
        "pick_up_minute": pick_min,
    }


def parse_price(text: str) -> Optional[int]:
    """Return a price in cents, 0 for free camps, or None if no amount is found."""
    if not text:
        return None
    if re.search(r"free", text, re.I) or text.strip() == "$0":
        return 0
    m = re.search(r"\$?([\d,]+)(?:\.(\d{2}))?", text)
    if not m:
        return None
    digits = m.group(1).replace(",", "")
    if not digits:
        return None
    return int(digits) * 100 + int(m.group(2) or 0)


def _grade_value(token: str) -> int:
    token = token.lower()
    if token == "k":
        return 0
    if token in ("pre-k", "prek"):
        return -1
    return int(token)


def parse_age_range(text: str) -> Optional[Dict[str, int]]:
    """Parse "Grades K-5", "1st-5th grade", "Ages 6-10" or "Age 5+"."""
    if not text:
        return None
    t = text.strip().lower()

    grade = re.search(
        r"(?:grades?\s*)?(\d+|k|pre-?k)\s*(?:st|nd|rd|th)?\s*[-–]\s*(\d+|k)\s*(?:st|nd|rd|th)?(?:\s*grade)?",
        t,
    )
    if grade and ("grade" in t or not grade.group(1).isdigit() or re.search(r"\d(?:st|nd|rd|th)", t)):
        return {"min_grade": _grade_value(grade.group(1)), "max_grade": _grade_value(grade.group(2))}

    age = re.search(r"(?:ages?\s*)?(\d+)\s*(?:[-–]|to)\s*(\d+)", t)
    if age:
        return {"min_age": int(age.group(1)), "max_age": int(age.group(2))}

    single = re.search(r"(?:ages?\s*)?(\d+)\s*(?:\+|and\s*up|and\s*older)", t)
    if single:
        return {"min_age": int(single.group(1)), "max_age": 18}
    return None
