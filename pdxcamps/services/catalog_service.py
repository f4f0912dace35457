"""Create and look up cities, organizations, camps, locations, sessions and scrape sources.

Sessions carry denormalized camp, organization and location fields so listings
render without joins; ``create_session`` fills them from the referenced records.
"""
from typing import Any, Dict, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import CampsError, NotFoundError
from pdxcamps.services.helpers import child_fits_requirements, has_valid_dates, slugify, to_date
from pdxcamps.services.import_service import create_location, create_organization

SESSION_STATUSES = ("draft", "active", "sold_out", "cancelled", "completed", "pending_review")
PUBLIC_SESSION_STATUSES = ("active", "sold_out")


def _require(label: str, doc_id: Optional[str], store, message: Optional[str] = None) -> Dict[str, Any]:
    doc = store.get_doc(label, doc_id) if doc_id else {}
    if not doc:
        raise NotFoundError(message or f"{label} not found")
    return doc


def create_city(name: str, slug: Optional[str] = None, *, store=graph_store) -> Dict[str, Any]:
    slug = slug or slugify(name)
    if store.find_docs("City", {"slug": slug}, limit=1):
        raise CampsError(f"City already exists: {slug}")
    return store.get_doc("City", store.insert_doc("City", {"name": name, "slug": slug}))


def add_organization(
    name: str,
    city_id: str,
    *,
    website: Optional[str] = None,
    description: Optional[str] = None,
    store=graph_store,
) -> Dict[str, Any]:
    _require("City", city_id, store, "City not found")
    org_id = create_organization(name, city_id, description=description, website=website, store=store)
    return store.get_doc("Organization", org_id)


def list_organizations(city_id: Optional[str] = None, *, store=graph_store) -> List[Dict[str, Any]]:
    filters = {"city_ids__contains": city_id} if city_id else None
    return sorted(store.find_docs("Organization", filters), key=lambda o: (o.get("name") or "").lower())


def add_camp(
    organization_id: str,
    name: str,
    *,
    description: Optional[str] = None,
    categories: Optional[List[str]] = None,
    age_requirements: Optional[Dict[str, Any]] = None,
    website: Optional[str] = None,
    store=graph_store,
) -> Dict[str, Any]:
    _require("Organization", organization_id, store, "Organization not found")
    camp_id = store.insert_doc("Camp", {
        "organization_id": organization_id,
        "name": name,
        "slug": slugify(name),
        "description": description or f"{name} camp",
        "categories": categories or ["General"],
        "age_requirements": age_requirements or {},
        "website": website,
        "image_urls": [],
        "image_storage_ids": [],
        "is_active": True,
    })
    return store.get_doc("Camp", camp_id)


def list_camps(organization_id: Optional[str] = None, category: Optional[str] = None, *, store=graph_store) -> List[Dict[str, Any]]:
    filters: Dict[str, Any] = {}
    if organization_id:
        filters["organization_id"] = organization_id
    if category:
        filters["categories__contains"] = category
    return store.find_docs("Camp", filters or None)


def add_location(
    organization_id: str,
    name: str,
    city_id: str,
    *,
    address: Optional[Dict[str, Any]] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    store=graph_store,
) -> Dict[str, Any]:
    _require("Organization", organization_id, store, "Organization not found")
    loc_id = create_location(
        organization_id, name, city_id, address=address, latitude=latitude, longitude=longitude, store=store,
    )
    return store.get_doc("Location", loc_id)


def list_locations(organization_id: Optional[str] = None, *, store=graph_store) -> List[Dict[str, Any]]:
    return store.find_docs("Location", {"organization_id": organization_id} if organization_id else None)


def create_session(
    camp_id: str,
    location_id: str,
    start_date: str,
    end_date: str,
    *,
    price: int = 0,
    capacity: int = 20,
    drop_off_time: Optional[Dict[str, int]] = None,
    pick_up_time: Optional[Dict[str, int]] = None,
    status: str = "draft",
    waitlist_enabled: bool = True,
    waitlist_capacity: Optional[int] = None,
    external_registration_url: Optional[str] = None,
    age_requirements: Optional[Dict[str, Any]] = None,
    store=graph_store,
) -> Dict[str, Any]:
    camp = _require("Camp", camp_id, store, "Camp not found")
    location = _require("Location", location_id, store, "Location not found")
    if status not in SESSION_STATUSES:
        raise CampsError(f"Invalid session status: {status}")
    if to_date(end_date) < to_date(start_date):
        raise CampsError("End date must be on or after start date")
    if capacity < 0 or price < 0:
        raise CampsError("Price and capacity must not be negative")
    org = store.get_doc("Organization", camp.get("organization_id"))
    session_id = store.insert_doc("Session", {
        "camp_id": camp_id,
        "location_id": location_id,
        "organization_id": camp.get("organization_id"),
        "city_id": location.get("city_id"),
        "start_date": start_date,
        "end_date": end_date,
        "drop_off_time": drop_off_time or {"hour": 9, "minute": 0},
        "pick_up_time": pick_up_time or {"hour": 15, "minute": 0},
        "price": price,
        "currency": "USD",
        "capacity": capacity,
        "enrolled_count": 0,
        "waitlist_count": 0,
        "waitlist_enabled": waitlist_enabled,
        "waitlist_capacity": waitlist_capacity,
        "status": status,
        "age_requirements": age_requirements or camp.get("age_requirements") or {},
        "external_registration_url": external_registration_url,
        "data_source": "manual",
        "camp_name": camp.get("name"),
        "camp_categories": camp.get("categories") or [],
        "organization_name": org.get("name"),
        "location_name": location.get("name"),
        "location_address": location.get("address"),
    })
    return store.get_doc("Session", session_id)


def get_document(label: str, doc_id: str, *, store=graph_store) -> Dict[str, Any]:
    return _require(label, doc_id, store)


def list_sessions(
    city_id: Optional[str] = None,
    *,
    status: Optional[str] = None,
    camp_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    start_after: Optional[str] = None,
    end_before: Optional[str] = None,
    child_id: Optional[str] = None,
    store=graph_store,
) -> List[Dict[str, Any]]:
    """Browse sessions. Without ``status`` only bookable ones (active, sold out) are returned.

    Sessions whose dates do not parse are never listed.

    ``child_id`` keeps sessions whose age/grade requirements fit that child.
    """
    filters: Dict[str, Any] = {}
    if city_id:
        filters["city_id"] = city_id
    if camp_id:
        filters["camp_id"] = camp_id
    if organization_id:
        filters["organization_id"] = organization_id
    filters["status" if status else "status__in"] = status or list(PUBLIC_SESSION_STATUSES)
    sessions = [s for s in store.find_docs("Session", filters, order_by="start_date") if has_valid_dates(s)]
    if start_after:
        sessions = [s for s in sessions if s.get("start_date", "") >= start_after]
    if end_before:
        sessions = [s for s in sessions if s.get("end_date", "") <= end_before]
    if child_id:
        child = _require("Child", child_id, store, "Child not found")
        sessions = [s for s in sessions if child_fits_requirements(child, s.get("age_requirements"), s["start_date"])]
    return sessions


def add_scrape_source(
    name: str,
    url: str,
    city_id: Optional[str] = None,
    *,
    organization_id: Optional[str] = None,
    scraper_config: Optional[Dict[str, Any]] = None,
    store=graph_store,
) -> Dict[str, Any]:
    source_id = store.insert_doc("ScrapeSource", {
        "name": name,
        "url": url,
        "city_id": city_id,
        "organization_id": organization_id,
        "scraper_config": scraper_config,
        "is_active": True,
        "url_history": [],
        "session_count": 0,
        "active_session_count": 0,
    })
    return store.get_doc("ScrapeSource", source_id)
