from fastapi import APIRouter, Depends, Query
from typing import Optional

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.models.camps import (
    CityCreate,
    OrganizationCreate,
    CampCreate,
    LocationCreate,
    SessionCreate,
    ScrapeSourceCreate,
)
from pdxcamps.services import catalog_service as catalog

router = APIRouter(tags=["camps"])


def _dump(model):
    return model.model_dump() if model is not None else None


@router.post("/cities", status_code=201)
def api_create_city(payload: CityCreate, store=Depends(get_store)):
    try:
        return catalog.create_city(payload.name, payload.slug, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to create city")


@router.post("/organizations", status_code=201)
def api_create_organization(payload: OrganizationCreate, store=Depends(get_store)):
    try:
        return catalog.add_organization(
            payload.name, payload.city_id, website=payload.website, description=payload.description, store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to create organization")


@router.get("/organizations")
def api_list_organizations(city_id: Optional[str] = None, store=Depends(get_store)):
    try:
        return catalog.list_organizations(city_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to list organizations")


@router.get("/organizations/{organization_id}")
def api_get_organization(organization_id: str, store=Depends(get_store)):
    try:
        return catalog.get_document("Organization", organization_id, store=store)
    except Exception as exc:
        raise http_error(exc)


@router.post("/camps", status_code=201)
def api_create_camp(payload: CampCreate, store=Depends(get_store)):
    try:
        return catalog.add_camp(
            payload.organization_id,
            payload.name,
            description=payload.description,
            categories=payload.categories,
            age_requirements=_dump(payload.age_requirements),
            website=payload.website,
            store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to create camp")


@router.get("/camps")
def api_list_camps(organization_id: Optional[str] = None, category: Optional[str] = None, store=Depends(get_store)):
    try:
        return catalog.list_camps(organization_id, category, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to list camps")


@router.get("/camps/{camp_id}")
def api_get_camp(camp_id: str, store=Depends(get_store)):
    try:
        return catalog.get_document("Camp", camp_id, store=store)
    except Exception as exc:
        raise http_error(exc)


@router.post("/locations", status_code=201)
def api_create_location(payload: LocationCreate, store=Depends(get_store)):
    try:
        return catalog.add_location(
            payload.organization_id,
            payload.name,
            payload.city_id,
            address=_dump(payload.address),
            latitude=payload.latitude,
            longitude=payload.longitude,
            store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to create location")


@router.get("/locations")
def api_list_locations(organization_id: Optional[str] = None, store=Depends(get_store)):
    try:
        return catalog.list_locations(organization_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to list locations")


@router.post("/sessions", status_code=201)
def api_create_session(payload: SessionCreate, store=Depends(get_store)):
    try:
        return catalog.create_session(
            payload.camp_id,
            payload.location_id,
            payload.start_date,
            payload.end_date,
            price=payload.price,
            capacity=payload.capacity,
            drop_off_time=_dump(payload.drop_off_time),
            pick_up_time=_dump(payload.pick_up_time),
            status=payload.status,
            waitlist_enabled=payload.waitlist_enabled,
            waitlist_capacity=payload.waitlist_capacity,
            external_registration_url=payload.external_registration_url,
            age_requirements=_dump(payload.age_requirements),
            store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to create session")


@router.get("/sessions")
def api_list_sessions(
    city_id: Optional[str] = None,
    status: Optional[str] = None,
    camp_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    start_after: Optional[str] = Query(None, description="Only sessions starting on or after this date"),
    end_before: Optional[str] = Query(None, description="Only sessions ending on or before this date"),
    child_id: Optional[str] = Query(None, description="Only sessions this child is eligible for"),
    store=Depends(get_store),
):
    try:
        return catalog.list_sessions(
            city_id,
            status=status,
            camp_id=camp_id,
            organization_id=organization_id,
            start_after=start_after,
            end_before=end_before,
            child_id=child_id,
            store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to list sessions")


@router.get("/sessions/{session_id}")
def api_get_session(session_id: str, store=Depends(get_store)):
    try:
        return catalog.get_document("Session", session_id, store=store)
    except Exception as exc:
        raise http_error(exc)


@router.post("/scrape-sources", status_code=201)
def api_create_scrape_source(payload: ScrapeSourceCreate, store=Depends(get_store)):
    try:
        return catalog.add_scrape_source(
            payload.name,
            payload.url,
            payload.city_id,
            organization_id=payload.organization_id,
            scraper_config=payload.scraper_config,
            store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to create scrape source")
