import logging
from typing import Any, Dict, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.dedup_service import normalize_name

logger = logging.getLogger(__name__)


def _duplicate_groups(camps: List[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for camp in camps:
        groups.setdefault(normalize_name(camp.get("name")), []).append(camp)
    return [members for members in groups.values() if len(members) > 1]


def merge_camp_into(keeper: Dict[str, Any], duplicate: Dict[str, Any], *, store=graph_store) -> int:
    """Repoint the duplicate's sessions at the keeper, carry images over, delete it."""
    sessions = store.find_docs("Session", {"camp_id": duplicate["id"]})
    for session in sessions:
        store.patch_doc("Session", session["id"], {"camp_id": keeper["id"], "camp_name": keeper.get("name")})
    patch: Dict[str, Any] = {}
    if duplicate.get("image_storage_ids") and not keeper.get("image_storage_ids"):
        patch["image_storage_ids"] = duplicate["image_storage_ids"]
    if duplicate.get("image_urls") and not keeper.get("image_urls"):
        patch["image_urls"] = duplicate["image_urls"]
    if patch:
        keeper.update(store.patch_doc("Camp", keeper["id"], patch))
    store.delete_doc("Camp", duplicate["id"])
    return len(sessions)


def deduplicate_camps(dry_run: bool = True, organization_id: Optional[str] = None, *, store=graph_store) -> Dict[str, Any]:
    """Merge camps of one organization whose names match after normalization.

    The oldest camp in each group is kept.
    """
    if organization_id:
        org_ids = [organization_id]
    else:
        org_ids = sorted({c.get("organization_id") for c in store.find_docs("Camp") if c.get("organization_id")})

    total_deleted = 0
    total_repointed = 0
    sample: List[Dict[str, Any]] = []
    for org_id in org_ids:
        for members in _duplicate_groups(store.find_docs("Camp", {"organization_id": org_id})):
            keeper, duplicates = members[0], members[1:]
            for dup in duplicates:
                if dry_run:
                    total_repointed += len(store.find_docs("Session", {"camp_id": dup["id"]}))
                else:
                    total_repointed += merge_camp_into(keeper, dup, store=store)
                total_deleted += 1
            if len(sample) < 20:
                sample.append({
                    "organization_id": org_id,
                    "name": keeper.get("name"),
                    "keep_id": keeper["id"],
                    "delete_ids": [d["id"] for d in duplicates],
                })
            if not dry_run:
                logger.info("Merged %d duplicate camp(s) of %r", len(duplicates), keeper.get("name"))

    return {
        "dry_run": dry_run,
        "total_deleted": total_deleted,
        "total_repointed": total_repointed,
        "orgs_processed": len(org_ids),
        "sample": sample,
    }
