"""Registration state transitions for a child and a session.

Status moves interested -> registered | waitlisted -> cancelled. The session
carries denormalized ``enrolled_count`` and ``waitlist_count`` which are
updated in the same call as the registration row. Waitlist positions stay
contiguous (1..n) after a cancellation.
"""
import logging
import time
from typing import Any, Dict, Optional, Tuple

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import CampsError, ForbiddenError, NotFoundError
from pdxcamps.services.paywall_service import enforce_camp_limit

logger = logging.getLogger(__name__)

REGISTRABLE_SESSION_STATUSES = ("active", "sold_out")


def _now_ms() -> int:
    return int(time.time() * 1000)


def capacity_status(status: Optional[str], enrolled: int, capacity: int) -> Optional[str]:
    """Flip active <-> sold_out as the session fills and frees up; other statuses are left alone."""
    if status == "active" and enrolled >= capacity:
        return "sold_out"
    if status == "sold_out" and enrolled < capacity:
        return "active"
    return status


def _load_child_and_session(family_id: str, child_id: str, session_id: str, store) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    child = store.get_doc("Child", child_id)
    if not child:
        raise NotFoundError("Child not found")
    if child.get("family_id") != family_id:
        raise ForbiddenError("Child does not belong to this family")
    session = store.get_doc("Session", session_id)
    if not session:
        raise NotFoundError("Session not found")
    return child, session


def _find_registration(child_id: str, session_id: str, store) -> Dict[str, Any]:
    rows = store.find_docs("Registration", {"child_id": child_id, "session_id": session_id})
    return rows[0] if rows else {}


def _load_own_registration(family_id: str, registration_id: str, store) -> Dict[str, Any]:
    reg = store.get_doc("Registration", registration_id)
    if not reg:
        raise NotFoundError("Registration not found")
    if reg.get("family_id") != family_id:
        raise ForbiddenError("Registration does not belong to this family")
    return reg


def _reject_active_duplicate(existing: Dict[str, Any]) -> None:
    if existing.get("status") == "registered":
        raise CampsError("Child is already registered for this session")
    if existing.get("status") == "waitlisted":
        raise CampsError("Child is already on the waitlist for this session")


def mark_interested(
    family_id: str,
    child_id: str,
    session_id: str,
    notes: Optional[str] = None,
    *,
    store=graph_store,
) -> Dict[str, Any]:
    """Bookmark a session for a child. This is the paywall-gated step."""
    _load_child_and_session(family_id, child_id, session_id, store)
    if _find_registration(child_id, session_id, store):
        raise CampsError("Registration already exists for this child and session")
    enforce_camp_limit(family_id, store=store)
    reg_id = store.insert_doc("Registration", {
        "family_id": family_id,
        "child_id": child_id,
        "session_id": session_id,
        "status": "interested",
        "notes": notes,
    })
    return {"registration_id": reg_id, "status": "interested", "waitlist_position": None}


def register(
    family_id: str,
    child_id: str,
    session_id: str,
    notes: Optional[str] = None,
    *,
    store=graph_store,
) -> Dict[str, Any]:
    """Register a child, falling back to the waitlist when the session is full."""
    _, session = _load_child_and_session(family_id, child_id, session_id, store)
    if session.get("status") not in REGISTRABLE_SESSION_STATUSES:
        raise CampsError("Session is not available for registration")

    existing = _find_registration(child_id, session_id, store)
    if existing:
        _reject_active_duplicate(existing)

    enrolled = int(session.get("enrolled_count") or 0)
    capacity = int(session.get("capacity") or 0)
    waitlist_count = int(session.get("waitlist_count") or 0)

    if enrolled < capacity:
        patch: Dict[str, Any] = {"status": "registered", "registered_at": _now_ms(), "waitlist_position": None}
        enrolled += 1
        store.patch_doc("Session", session_id, {
            "enrolled_count": enrolled,
            "status": capacity_status(session.get("status"), enrolled, capacity),
        })
        position = None
    elif session.get("waitlist_enabled"):
        position = waitlist_count + 1
        patch = {"status": "waitlisted", "waitlist_position": position}
        store.patch_doc("Session", session_id, {"waitlist_count": waitlist_count + 1})
    else:
        raise CampsError("Session is full and waitlist is not available")

    if notes is not None:
        patch["notes"] = notes
    if existing:
        reg_id = existing["id"]
        store.patch_doc("Registration", reg_id, patch)
    else:
        reg_id = store.insert_doc("Registration", {
            "family_id": family_id,
            "child_id": child_id,
            "session_id": session_id,
            **patch,
        })
    logger.info("Registration %s for session %s is now %s", reg_id, session_id, patch["status"])
    return {"registration_id": reg_id, "status": patch["status"], "waitlist_position": position}


def compact_waitlist(session_id: str, store=graph_store) -> int:
    """Renumber a session's waitlisted rows 1..n in their current order."""
    waiting = [
        r for r in store.find_docs("Registration", {"session_id": session_id, "status": "waitlisted"})
    ]
    waiting.sort(key=lambda r: (r.get("waitlist_position") or 0))
    for i, reg in enumerate(waiting, start=1):
        if reg.get("waitlist_position") != i:
            store.patch_doc("Registration", reg["id"], {"waitlist_position": i})
    return len(waiting)


def cancel_registration(family_id: str, registration_id: str, *, store=graph_store) -> Dict[str, Any]:
    """Cancel a registration and release its seat or waitlist slot."""
    reg = _load_own_registration(family_id, registration_id, store)
    previous = reg.get("status")
    if previous == "cancelled":
        raise CampsError("Registration is already cancelled")

    store.patch_doc("Registration", registration_id, {"status": "cancelled", "waitlist_position": None})

    session = store.get_doc("Session", reg["session_id"])
    if session:
        if previous == "registered":
            enrolled = max(0, int(session.get("enrolled_count") or 0) - 1)
            store.patch_doc("Session", session["id"], {
                "enrolled_count": enrolled,
                "status": capacity_status(session.get("status"), enrolled, int(session.get("capacity") or 0)),
            })
        elif previous == "waitlisted":
            store.patch_doc("Session", session["id"], {
                "waitlist_count": max(0, int(session.get("waitlist_count") or 0) - 1),
            })
            compact_waitlist(session["id"], store)
    else:
        logger.warning("Cancelled registration %s points at missing session %s", registration_id, reg.get("session_id"))
    return {"registration_id": registration_id, "previous_status": previous, "status": "cancelled"}


def update_registration_notes(family_id: str, registration_id: str, notes: Optional[str], *, store=graph_store) -> Dict[str, Any]:
    _load_own_registration(family_id, registration_id, store)
    return store.patch_doc("Registration", registration_id, {"notes": notes})


def join_waitlist(family_id: str, child_id: str, session_id: str, *, store=graph_store) -> Dict[str, Any]:
    """Put a child on a session's waitlist, upgrading an interested or cancelled row."""
    _, session = _load_child_and_session(family_id, child_id, session_id, store)
    if not session.get("waitlist_enabled"):
        raise CampsError("Waitlist is not enabled for this session")
    waitlist_count = int(session.get("waitlist_count") or 0)
    waitlist_capacity = session.get("waitlist_capacity")
    if waitlist_capacity is not None and waitlist_count >= int(waitlist_capacity):
        raise CampsError("Waitlist is full")

    existing = _find_registration(child_id, session_id, store)
    if existing:
        _reject_active_duplicate(existing)

    position = waitlist_count + 1
    if existing:
        reg_id = existing["id"]
        store.patch_doc("Registration", reg_id, {"status": "waitlisted", "waitlist_position": position})
    else:
        reg_id = store.insert_doc("Registration", {
            "family_id": family_id,
            "child_id": child_id,
            "session_id": session_id,
            "status": "waitlisted",
            "waitlist_position": position,
        })
    store.patch_doc("Session", session_id, {"waitlist_count": position})
    return {"registration_id": reg_id, "status": "waitlisted", "waitlist_position": position}


def update_session_counts(session_id: str, enrolled_delta: int = 0, waitlist_delta: int = 0, *, store=graph_store) -> Dict[str, Any]:
    """Adjust a session's counters by a delta, clamping at zero."""
    session = store.get_doc("Session", session_id)
    if not session:
        raise NotFoundError("Session not found")
    enrolled = max(0, int(session.get("enrolled_count") or 0) + enrolled_delta)
    waitlist = max(0, int(session.get("waitlist_count") or 0) + waitlist_delta)
    return store.patch_doc("Session", session_id, {
        "enrolled_count": enrolled,
        "waitlist_count": waitlist,
        "status": capacity_status(session.get("status"), enrolled, int(session.get("capacity") or 0)),
    })
