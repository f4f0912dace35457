"""Name matching used to recognise a re-scraped session as one we already have."""
import re
import time
from typing import Any, Dict, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import NotFoundError

SIMILARITY_THRESHOLD = 0.8

# "(Grades 3-5)", "(Grade 3)", "(Ages 8-12)", "(Age 5+)" at the end of a camp name
_AUDIENCE_SUFFIX_RE = re.compile(r"\s*\((?:grades?|ages?)\b[^)]*\)\s*$", re.I)


def normalize_name(name: Optional[str]) -> str:
    s = _AUDIENCE_SUFFIX_RE.sub("", name or "")
    return re.sub(r"\s+", " ", s).strip().lower()


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def calculate_similarity(a: Optional[str], b: Optional[str]) -> float:
    """1.0 for identical names, 0.0 when exactly one is empty."""
    na, nb = normalize_name(a), normalize_name(b)
    if na == nb:
        return 1.0
    if not na or not nb:
        return 0.0
    return 1 - levenshtein(na, nb) / max(len(na), len(nb))


def generate_dedupe_key(source: str, name: str, start_date: str) -> str:
    collapsed = re.sub(r"\s+", " ", (name or "").strip().lower())
    return f"{source}:{collapsed}:{start_date}"


def find_existing_session(
    source_id: str,
    name: str,
    start_date: str,
    *,
    threshold: float = SIMILARITY_THRESHOLD,
    store=graph_store,
) -> Optional[Dict[str, Any]]:
    """Find a session from the same source and start date whose camp name is close enough."""
    candidates = store.find_docs("Session", {"source_id": source_id, "start_date": start_date})
    for session in candidates:
        if calculate_similarity(session.get("camp_name") or "", name) > threshold:
            return session
    return None


def update_existing_session(session_id: str, data: Dict[str, Any], *, store=graph_store) -> List[str]:
    """Refresh a session from newly scraped data.

    ``data`` uses scraped-session keys (price_in_cents, end_date, drop_off_hour, ...).
    Only changed values are written; ``last_scraped_at`` is always bumped.
    Returns the names of the session fields that changed.
    """
    session = store.get_doc("Session", session_id)
    if not session:
        raise NotFoundError("Session not found")

    candidate: Dict[str, Any] = {}
    if data.get("price_in_cents") is not None:
        candidate["price"] = data["price_in_cents"]
    if data.get("end_date"):
        candidate["end_date"] = data["end_date"]
    if data.get("drop_off_hour") is not None:
        candidate["drop_off_time"] = {"hour": data["drop_off_hour"], "minute": data.get("drop_off_minute") or 0}
    if data.get("pick_up_hour") is not None:
        candidate["pick_up_time"] = {"hour": data["pick_up_hour"], "minute": data.get("pick_up_minute") or 0}
    if data.get("registration_url"):
        candidate["external_registration_url"] = data["registration_url"]
    for key in ("completeness_score", "missing_fields", "capacity", "enrolled_count"):
        if data.get(key) is not None:
            candidate[key] = data[key]

    changed = {k: v for k, v in candidate.items() if session.get(k) != v}
    patch = dict(changed)
    patch["last_scraped_at"] = int(time.time() * 1000)
    store.patch_doc("Session", session_id, patch)
    return sorted(changed)
