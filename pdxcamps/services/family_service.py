import secrets
import time
from typing import Any, Dict, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import CampsError, ForbiddenError, NotFoundError
from pdxcamps.services.paywall_service import enforce_camp_limit

FAMILY_EVENT_TYPES = ("vacation", "family_visit", "day_camp", "summer_school", "other")


def create_family(email: str, display_name: str, primary_city_id: Optional[str] = None, *, store=graph_store) -> Dict[str, Any]:
    family_id = store.insert_doc("Family", {
        "email": email,
        "display_name": display_name,
        "primary_city_id": primary_city_id,
        "created_at": int(time.time() * 1000),
    })
    return store.get_doc("Family", family_id)


def add_child(
    family_id: str,
    first_name: str,
    birthdate: Optional[str] = None,
    current_grade: Optional[int] = None,
    *,
    store=graph_store,
) -> Dict[str, Any]:
    if not store.get_doc("Family", family_id):
        raise NotFoundError("Family not found")
    child_id = store.insert_doc("Child", {
        "family_id": family_id,
        "first_name": first_name,
        "birthdate": birthdate,
        "current_grade": current_grade,
        "is_active": True,
    })
    return store.get_doc("Child", child_id)


def list_children(family_id: str, *, store=graph_store) -> List[Dict[str, Any]]:
    return [c for c in store.find_docs("Child", {"family_id": family_id}) if c.get("is_active", True)]


def add_custom_camp(
    family_id: str,
    child_id: str,
    camp_name: str,
    start_date: str,
    end_date: str,
    *,
    store=graph_store,
) -> Dict[str, Any]:
    """Track a camp booked outside the catalog. Counts toward the free-plan limit."""
    child = store.get_doc("Child", child_id)
    if not child:
        raise NotFoundError("Child not found")
    if child.get("family_id") != family_id:
        raise ForbiddenError("Child does not belong to this family")
    enforce_camp_limit(family_id, store=store)
    camp_id = store.insert_doc("CustomCamp", {
        "family_id": family_id,
        "child_id": child_id,
        "camp_name": camp_name,
        "start_date": start_date,
        "end_date": end_date,
        "status": "registered",
        "is_active": True,
    })
    return store.get_doc("CustomCamp", camp_id)


def add_family_event(
    family_id: str,
    child_ids: List[str],
    title: str,
    start_date: str,
    end_date: str,
    event_type: str = "other",
    *,
    store=graph_store,
) -> Dict[str, Any]:
    if event_type not in FAMILY_EVENT_TYPES:
        raise CampsError(f"Invalid event type: {event_type}")
    if end_date < start_date:
        raise CampsError("End date must be on or after start date")
    event_id = store.insert_doc("FamilyEvent", {
        "family_id": family_id,
        "child_ids": list(child_ids),
        "title": title,
        "start_date": start_date,
        "end_date": end_date,
        "event_type": event_type,
        "is_active": True,
    })
    return store.get_doc("FamilyEvent", event_id)


def create_family_share(family_id: str, child_ids: List[str], *, store=graph_store) -> Dict[str, Any]:
    """Create a read-only share token covering some of the family's children."""
    own = {c["id"] for c in store.find_docs("Child", {"family_id": family_id})}
    foreign = [cid for cid in child_ids if cid not in own]
    if foreign:
        raise ForbiddenError("Child does not belong to this family")
    token = secrets.token_urlsafe(16)
    share_id = store.insert_doc("FamilyShare", {
        "family_id": family_id,
        "share_token": token,
        "child_ids": list(child_ids),
        "created_at": int(time.time() * 1000),
    })
    return store.get_doc("FamilyShare", share_id)
