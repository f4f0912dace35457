from fastapi import APIRouter, Depends, Query
from typing import Optional

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.models.cleanup import ReassignRequest, CategoryUpdates
from pdxcamps.services.cleanup.organizations import (
    find_duplicate_organizations,
    merge_duplicate_organizations,
    reassign_organization,
    cleanup_orphans,
)
from pdxcamps.services.cleanup.camps import deduplicate_camps
from pdxcamps.services.cleanup.sessions import (
    DEFAULT_CUTOFF_DATE,
    find_duplicate_sessions,
    merge_duplicate_sessions,
    auto_deduplicate_sessions,
    find_bad_sessions,
    delete_bad_sessions,
    delete_old_sessions,
    trace_session_source,
)
from pdxcamps.services.cleanup.locations import (
    find_bad_locations,
    delete_unused_bad_locations,
    find_locations_needing_geocode,
    batch_geocode_locations,
    fix_location_addresses,
    find_duplicate_locations,
    merge_duplicate_locations,
)
from pdxcamps.services.cleanup.categories import get_uncategorized_camps_batch, apply_camp_categories

router = APIRouter(prefix="/cleanup", tags=["cleanup"])

DRY_RUN = Query(True, description="Report what would change without writing")


# --- Organizations ---

@router.get("/organizations/duplicates")
def api_find_duplicate_organizations(store=Depends(get_store)):
    try:
        return find_duplicate_organizations(store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to find duplicate organizations")


@router.post("/organizations/merge-duplicates")
def api_merge_duplicate_organizations(dry_run: bool = DRY_RUN, store=Depends(get_store)):
    try:
        return merge_duplicate_organizations(dry_run, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to merge organizations")


@router.post("/organizations/reassign")
def api_reassign_organization(payload: ReassignRequest, store=Depends(get_store)):
    try:
        return reassign_organization(payload.from_id, payload.to_id, payload.source_id, payload.dry_run, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to reassign organization")


@router.post("/orphans")
def api_cleanup_orphans(dry_run: bool = DRY_RUN, store=Depends(get_store)):
    try:
        return cleanup_orphans(dry_run, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to clean up orphans")


# --- Camps ---

@router.post("/camps/deduplicate")
def api_deduplicate_camps(dry_run: bool = DRY_RUN, organization_id: Optional[str] = None, store=Depends(get_store)):
    try:
        return deduplicate_camps(dry_run, organization_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to deduplicate camps")


@router.get("/camps/uncategorized")
def api_uncategorized_camps(limit: int = Query(50, ge=1, le=500), store=Depends(get_store)):
    try:
        return get_uncategorized_camps_batch(limit, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to load uncategorized camps")


@router.post("/camps/categories")
def api_apply_categories(payload: CategoryUpdates, store=Depends(get_store)):
    try:
        return apply_camp_categories([u.model_dump() for u in payload.updates], store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to apply categories")


# --- Sessions ---

@router.get("/sessions/duplicates")
def api_find_duplicate_sessions(city_id: Optional[str] = None, store=Depends(get_store)):
    try:
        return find_duplicate_sessions(city_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to find duplicate sessions")


@router.post("/sessions/merge-duplicates")
def api_merge_duplicate_sessions(
    dry_run: bool = DRY_RUN,
    city_id: Optional[str] = None,
    limit: int = Query(1000, ge=1),
    store=Depends(get_store),
):
    try:
        return merge_duplicate_sessions(dry_run, city_id, limit, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to merge sessions")


@router.post("/sessions/auto-deduplicate")
def api_auto_deduplicate_sessions(store=Depends(get_store)):
    """Scheduled job entry point; always writes."""
    try:
        return auto_deduplicate_sessions(store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to deduplicate sessions")


@router.get("/sessions/bad")
def api_find_bad_sessions(store=Depends(get_store)):
    try:
        return find_bad_sessions(store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to find bad sessions")


@router.post("/sessions/delete-bad")
def api_delete_bad_sessions(dry_run: bool = DRY_RUN, store=Depends(get_store)):
    try:
        return delete_bad_sessions(dry_run, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to delete bad sessions")


@router.post("/sessions/delete-old")
def api_delete_old_sessions(
    cutoff_date: str = Query(DEFAULT_CUTOFF_DATE, description="Sessions starting before this date are removed"),
    dry_run: bool = DRY_RUN,
    store=Depends(get_store),
):
    try:
        return delete_old_sessions(cutoff_date, dry_run, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to delete old sessions")


@router.get("/sessions/{session_id}/trace")
def api_trace_session(session_id: str, store=Depends(get_store)):
    try:
        return trace_session_source(session_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to trace session")


# --- Locations ---

@router.get("/locations/bad")
def api_find_bad_locations(store=Depends(get_store)):
    try:
        return find_bad_locations(store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to find bad locations")


@router.post("/locations/delete-unused-bad")
def api_delete_unused_bad_locations(dry_run: bool = DRY_RUN, store=Depends(get_store)):
    try:
        return delete_unused_bad_locations(dry_run, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to delete locations")


@router.get("/locations/needing-geocode")
def api_locations_needing_geocode(store=Depends(get_store)):
    try:
        return find_locations_needing_geocode(store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to list locations")


@router.post("/locations/geocode")
def api_geocode_locations(limit: int = Query(50, ge=1, le=500), store=Depends(get_store)):
    try:
        return batch_geocode_locations(limit, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to geocode locations")


@router.post("/locations/fix-addresses")
def api_fix_location_addresses(dry_run: bool = DRY_RUN, store=Depends(get_store)):
    try:
        return fix_location_addresses(dry_run, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to fix addresses")


@router.get("/locations/duplicates")
def api_find_duplicate_locations(organization_id: Optional[str] = None, store=Depends(get_store)):
    try:
        return find_duplicate_locations(organization_id, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to find duplicate locations")


@router.post("/locations/merge-duplicates")
def api_merge_duplicate_locations(dry_run: bool = DRY_RUN, store=Depends(get_store)):
    try:
        return merge_duplicate_locations(dry_run, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to merge locations")
