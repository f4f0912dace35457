from fastapi import APIRouter, Depends, Response
from typing import Optional

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.services.calendar_service import (
    generate_ics,
    get_calendar_events,
    get_calendar_events_by_token,
    get_family_events,
    ics_for_share,
)
from pdxcamps.services.catalog_service import get_document

router = APIRouter(tags=["calendar"])

ICS_MEDIA_TYPE = "text/calendar; charset=utf-8"


def _ics_response(filename: str, content: str) -> Response:
    return Response(
        content=content,
        media_type=ICS_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/families/{family_id}/calendar")
def api_family_calendar(family_id: str, child_id: Optional[str] = None, store=Depends(get_store)):
    try:
        return {
            "events": get_calendar_events(family_id, child_id, store=store),
            "family_events": get_family_events(family_id, [child_id] if child_id else None, store=store),
        }
    except Exception as exc:
        raise http_error(exc, "Failed to load calendar")


@router.get("/families/{family_id}/calendar.ics")
def api_family_calendar_ics(family_id: str, child_id: Optional[str] = None, store=Depends(get_store)):
    try:
        family = get_document("Family", family_id, store=store)
        name = family.get("display_name") or "My Family"
        if child_id:
            name = get_document("Child", child_id, store=store).get("first_name") or name
        content = generate_ics(
            name,
            get_calendar_events(family_id, child_id, store=store),
            get_family_events(family_id, [child_id] if child_id else None, store=store),
        )
        return _ics_response(f"{name}-camps.ics", content)
    except Exception as exc:
        raise http_error(exc, "Failed to build calendar")


@router.get("/calendar/{share_token}.ics")
def api_shared_calendar_ics(share_token: str, store=Depends(get_store)):
    try:
        feed = ics_for_share(share_token, store=store)
        return _ics_response(feed["filename"], feed["content"])
    except Exception as exc:
        raise http_error(exc, "Failed to build calendar")


@router.get("/calendar/{share_token}")
def api_shared_calendar(share_token: str, store=Depends(get_store)):
    try:
        return {"events": get_calendar_events_by_token(share_token, store=store)}
    except Exception as exc:
        raise http_error(exc, "Failed to load calendar")
