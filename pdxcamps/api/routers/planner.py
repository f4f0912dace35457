from fastapi import APIRouter, Depends, Query
from typing import Optional

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.services.planner_service import get_summer_coverage

router = APIRouter(tags=["planner"])


@router.get("/families/{family_id}/coverage")
def api_summer_coverage(
    family_id: str,
    year: int = Query(..., ge=2000, le=2100, description="Summer to plan"),
    city_id: Optional[str] = Query(None, description="Defaults to the family's primary city"),
    store=Depends(get_store),
):
    """Week-by-week camp coverage for each child in the family."""
    try:
        weeks = get_summer_coverage(family_id, year, city_id, store=store)
        return {
            "family_id": family_id,
            "year": year,
            "weeks": weeks,
            "gap_weeks": sum(1 for w in weeks if w["has_gap"]),
        }
    except Exception as exc:
        raise http_error(exc, "Failed to compute coverage")
