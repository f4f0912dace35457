from fastapi import APIRouter, Depends

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.models.referrals import AttributeRequest, ReferralStats
from pdxcamps.services.referral_service import (
    generate_referral_code,
    attribute_referral,
    complete_referral,
    get_referral_stats,
)

router = APIRouter(tags=["referrals"])


@router.post("/families/{family_id}/referral-code")
def api_referral_code(family_id: str, store=Depends(get_store)):
    try:
        return {"referral_code": generate_referral_code(family_id, store=store)}
    except Exception as exc:
        raise http_error(exc, "Failed to create referral code")


@router.post("/families/{family_id}/referral")
def api_attribute_referral(family_id: str, payload: AttributeRequest, store=Depends(get_store)):
    try:
        event_id = attribute_referral(family_id, payload.referral_code, store=store)
        return {"attributed": event_id is not None, "event_id": event_id}
    except Exception as exc:
        raise http_error(exc, "Failed to attribute referral")


@router.post("/families/{family_id}/referral/complete")
def api_complete_referral(family_id: str, store=Depends(get_store)):
    """Called once the referred family converts to a paid plan."""
    try:
        res = complete_referral(family_id, store=store)
        return {"completed": res is not None, **(res or {})}
    except Exception as exc:
        raise http_error(exc, "Failed to complete referral")


@router.get("/families/{family_id}/referral-stats", response_model=ReferralStats)
def api_referral_stats(family_id: str, store=Depends(get_store)):
    try:
        return get_referral_stats(family_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to load referral stats")
