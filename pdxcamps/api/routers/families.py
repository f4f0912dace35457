from fastapi import APIRouter, Depends, Request

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.models.families import (
    FamilyCreate,
    ChildCreate,
    CustomCampCreate,
    FamilyEventCreate,
    ShareCreate,
)
from pdxcamps.services.calendar_service import subscription_links
from pdxcamps.services.catalog_service import get_document
from pdxcamps.services.family_service import (
    create_family,
    add_child,
    list_children,
    add_custom_camp,
    add_family_event,
    create_family_share,
)
from pdxcamps.services.referral_service import attribute_referral

router = APIRouter(tags=["families"])


@router.post("/families", status_code=201)
def api_create_family(payload: FamilyCreate, store=Depends(get_store)):
    try:
        family = create_family(payload.email, payload.display_name, payload.primary_city_id, store=store)
        if payload.referral_code:
            family["referral_event_id"] = attribute_referral(family["id"], payload.referral_code, store=store)
        return family
    except Exception as exc:
        raise http_error(exc, "Failed to create family")


@router.get("/families/{family_id}")
def api_get_family(family_id: str, store=Depends(get_store)):
    try:
        return get_document("Family", family_id, store=store)
    except Exception as exc:
        raise http_error(exc)


@router.post("/families/{family_id}/children", status_code=201)
def api_add_child(family_id: str, payload: ChildCreate, store=Depends(get_store)):
    try:
        return add_child(family_id, payload.first_name, payload.birthdate, payload.current_grade, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to add child")


@router.get("/families/{family_id}/children")
def api_list_children(family_id: str, store=Depends(get_store)):
    try:
        return list_children(family_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to list children")


@router.post("/families/{family_id}/custom-camps", status_code=201)
def api_add_custom_camp(family_id: str, payload: CustomCampCreate, store=Depends(get_store)):
    try:
        return add_custom_camp(
            family_id, payload.child_id, payload.camp_name, payload.start_date, payload.end_date, store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to add custom camp")


@router.post("/families/{family_id}/events", status_code=201)
def api_add_family_event(family_id: str, payload: FamilyEventCreate, store=Depends(get_store)):
    try:
        return add_family_event(
            family_id,
            payload.child_ids,
            payload.title,
            payload.start_date,
            payload.end_date,
            payload.event_type,
            store=store,
        )
    except Exception as exc:
        raise http_error(exc, "Failed to add family event")


@router.post("/families/{family_id}/shares", status_code=201)
def api_create_share(family_id: str, payload: ShareCreate, request: Request, store=Depends(get_store)):
    """Create a share token and return it with calendar subscription links."""
    try:
        share = create_family_share(family_id, payload.child_ids, store=store)
        share.update(subscription_links(str(request.base_url), share["share_token"]))
        return share
    except Exception as exc:
        raise http_error(exc, "Failed to create share")
