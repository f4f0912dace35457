from typing import Any, Dict, Iterable, List

from pdxcamps.services import graph as graph_store

VALID_CATEGORIES = (
    "Sports", "Arts", "STEM", "Nature", "Music", "Academic", "Drama", "Adventure", "Cooking", "Dance",
)


def is_uncategorized(categories: Iterable[str]) -> bool:
    cats = list(categories or [])
    if not cats:
        return True
    if len(cats) == 1 and cats[0] == "General":
        return True
    return not any(c in VALID_CATEGORIES for c in cats)


def get_uncategorized_camps_batch(limit: int = 50, *, store=graph_store) -> Dict[str, Any]:
    pending = [c for c in store.find_docs("Camp") if is_uncategorized(c.get("categories"))]
    orgs: Dict[str, Dict[str, Any]] = {}
    camps: List[Dict[str, Any]] = []
    for camp in pending[:limit]:
        org_id = camp.get("organization_id")
        if org_id and org_id not in orgs:
            orgs[org_id] = store.get_doc("Organization", org_id)
        camps.append({
            "camp_id": camp["id"],
            "name": camp.get("name"),
            "org_name": (orgs.get(org_id) or {}).get("name") or "Unknown",
            "description": (camp.get("description") or "")[:500],
            "current_categories": camp.get("categories") or [],
        })
    return {"total_remaining": len(pending), "camps": camps}


def apply_camp_categories(updates: List[Dict[str, Any]], *, store=graph_store) -> Dict[str, Any]:
    """Write ``[{camp_id, categories}]`` onto camps and their sessions' ``camp_categories``."""
    updated_camps = 0
    updated_sessions = 0
    for update in updates:
        camp = store.get_doc("Camp", update["camp_id"])
        if not camp:
            continue
        categories = list(update["categories"])
        store.patch_doc("Camp", camp["id"], {"categories": categories})
        updated_camps += 1
        for session in store.find_docs("Session", {"camp_id": camp["id"]}):
            store.patch_doc("Session", session["id"], {"camp_categories": categories})
            updated_sessions += 1
    return {"updated_camps": updated_camps, "updated_sessions": updated_sessions}
