"""Small date, age and geography utilities shared by the camp services."""
import math
import re
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Union

DateLike = Union[str, date]

# Placeholder coordinates written by the importer for locations that were never geocoded.
DEFAULT_LATITUDE = 45.5152
DEFAULT_LONGITUDE = -122.6784

EARTH_RADIUS_MILES = 3958.8


def to_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def has_valid_dates(record: Dict[str, Any]) -> bool:
    """True when ``start_date`` and ``end_date`` both parse as ISO dates."""
    try:
        to_date(record["start_date"])
        to_date(record["end_date"])
    except (KeyError, TypeError, ValueError):
        return False
    return True


def calculate_age(birthdate: DateLike, on_date: Optional[DateLike] = None) -> int:
    """Age in whole years on ``on_date`` (today by default)."""
    birth = to_date(birthdate)
    today = to_date(on_date) if on_date else date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def calculate_grade_from_age(age: int) -> int:
    # K=0 at age 5, Pre-K=-1
    return age - 5


def is_age_in_range(age: int, min_age: Optional[int] = None, max_age: Optional[int] = None) -> bool:
    if min_age is not None and age < min_age:
        return False
    if max_age is not None and age > max_age:
        return False
    return True


def is_grade_in_range(grade: int, min_grade: Optional[int] = None, max_grade: Optional[int] = None) -> bool:
    if min_grade is not None and grade < min_grade:
        return False
    if max_grade is not None and grade > max_grade:
        return False
    return True


def child_fits_requirements(child: Dict[str, Any], requirements: Optional[Dict[str, Any]], on_date: DateLike) -> bool:
    """Check a child against a camp's age/grade requirements.

    Grade bounds are used when the camp defines them and the child has a grade;
    otherwise the child's age on ``on_date`` is compared to the age bounds.
    """
    req = requirements or {}
    has_grade_bounds = req.get("min_grade") is not None or req.get("max_grade") is not None
    grade = child.get("current_grade")
    if has_grade_bounds and grade is not None:
        return is_grade_in_range(int(grade), req.get("min_grade"), req.get("max_grade"))
    if child.get("birthdate"):
        age = calculate_age(child["birthdate"], on_date)
        if req.get("min_age") is not None or req.get("max_age") is not None:
            return is_age_in_range(age, req.get("min_age"), req.get("max_age"))
        if has_grade_bounds:
            return is_grade_in_range(calculate_grade_from_age(age), req.get("min_grade"), req.get("max_grade"))
    return True


def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in miles (Haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_default_coordinates(lat: Optional[float], lng: Optional[float]) -> bool:
    if lat is None or lng is None:
        return True
    return abs(lat - DEFAULT_LATITUDE) < 0.001 and abs(lng - DEFAULT_LONGITUDE) < 0.001


def slugify(text: str) -> str:
    s = (text or "").lower().strip()
    s = re.sub(r"[^\w\s-]", "", s)
    s = re.sub(r"[\s_-]+", "-", s)
    return s.strip("-")


def format_price(cents: int, currency: str = "USD") -> str:
    symbol = "$" if currency.upper() == "USD" else f"{currency.upper()} "
    return f"{symbol}{cents / 100:,.2f}"


def generate_summer_weeks(year: int) -> List[Dict[str, Any]]:
    """Monday-Friday weeks from the first Monday of June to the last Monday of August."""
    start = date(year, 6, 1)
    start += timedelta(days=(7 - start.weekday()) % 7)
    weeks: List[Dict[str, Any]] = []
    monday = start
    while monday.month <= 8:
        friday = monday + timedelta(days=4)
        weeks.append({
            "week_number": len(weeks) + 1,
            "start_date": monday.isoformat(),
            "end_date": friday.isoformat(),
            "month_name": monday.strftime("%B"),
            "label": f"{monday.strftime('%b')} {monday.day}-{friday.day}",
        })
        monday += timedelta(days=7)
    return weeks


def do_date_ranges_overlap(a_start: DateLike, a_end: DateLike, b_start: DateLike, b_end: DateLike) -> bool:
    return to_date(a_start) <= to_date(b_end) and to_date(b_start) <= to_date(a_end)


def weekdays_between(start: DateLike, end: DateLike) -> List[date]:
    d, last = to_date(start), to_date(end)
    out: List[date] = []
    while d <= last:
        if d.weekday() < 5:
            out.append(d)
        d += timedelta(days=1)
    return out


def count_overlapping_weekdays(a_start: DateLike, a_end: DateLike, b_start: DateLike, b_end: DateLike) -> int:
    lo = max(to_date(a_start), to_date(b_start))
    hi = min(to_date(a_end), to_date(b_end))
    if lo > hi:
        return 0
    return len(weekdays_between(lo, hi))
