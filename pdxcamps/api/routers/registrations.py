from fastapi import APIRouter, Depends

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.models.registrations import RegistrationRequest, WaitlistRequest, NotesUpdate
from pdxcamps.services.registration_service import (
    mark_interested,
    register,
    cancel_registration,
    update_registration_notes,
    join_waitlist,
)

router = APIRouter(tags=["registrations"])


@router.get("/families/{family_id}/registrations")
def api_list_registrations(family_id: str, store=Depends(get_store)):
    try:
        return store.find_docs("Registration", {"family_id": family_id})
    except Exception as exc:
        raise http_error(exc, "Failed to list registrations")


@router.post("/families/{family_id}/registrations/interested", status_code=201)
def api_mark_interested(family_id: str, payload: RegistrationRequest, store=Depends(get_store)):
    try:
        return mark_interested(family_id, payload.child_id, payload.session_id, payload.notes, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to save session")


@router.post("/families/{family_id}/registrations", status_code=201)
def api_register(family_id: str, payload: RegistrationRequest, store=Depends(get_store)):
    try:
        return register(family_id, payload.child_id, payload.session_id, payload.notes, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to register")


@router.post("/families/{family_id}/registrations/{registration_id}/cancel")
def api_cancel(family_id: str, registration_id: str, store=Depends(get_store)):
    try:
        return cancel_registration(family_id, registration_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to cancel registration")


@router.patch("/families/{family_id}/registrations/{registration_id}/notes")
def api_update_notes(family_id: str, registration_id: str, payload: NotesUpdate, store=Depends(get_store)):
    try:
        return update_registration_notes(family_id, registration_id, payload.notes, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to update notes")


@router.post("/families/{family_id}/waitlist", status_code=201)
def api_join_waitlist(family_id: str, payload: WaitlistRequest, store=Depends(get_store)):
    try:
        return join_waitlist(family_id, payload.child_id, payload.session_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to join waitlist")
