import logging
from typing import Any, Dict, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import NotFoundError

logger = logging.getLogger(__name__)

UNKNOWN_WEBSITE = "<UNKNOWN>"

# Documents that carry an organization_id and must follow a merge.
DEPENDENT_LABELS = ("Session", "Camp", "Location", "ScrapeSource")


def _has_website(org: Dict[str, Any]) -> bool:
    website = org.get("website")
    return bool(website) and website != UNKNOWN_WEBSITE


def _group_by_name(orgs: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for org in orgs:
        groups.setdefault(org.get("name") or "", []).append(org)
    return {name: members for name, members in groups.items() if len(members) > 1}


def _session_count(org_id: str, store) -> int:
    return len(store.find_docs("Session", {"organization_id": org_id}))


def find_duplicate_organizations(*, store=graph_store) -> Dict[str, Any]:
    """Report organizations that share an exact name."""
    orgs = store.find_docs("Organization")
    groups = []
    for name, members in _group_by_name(orgs).items():
        groups.append({
            "name": name,
            "count": len(members),
            "organizations": [
                {
                    "id": o["id"],
                    "website": o.get("website"),
                    "has_logo": bool(o.get("logo_storage_id")),
                    "session_count": _session_count(o["id"], store),
                }
                for o in members
            ],
        })
    groups.sort(key=lambda g: -g["count"])
    return {
        "total_organizations": len(orgs),
        "duplicate_groups": len(groups),
        "groups": groups,
    }


def _repoint(from_id: str, to_id: str, label: str, dry_run: bool, store, extra: Optional[Dict[str, Any]] = None) -> int:
    docs = store.find_docs(label, {"organization_id": from_id})
    if not dry_run:
        for doc in docs:
            store.patch_doc(label, doc["id"], {"organization_id": to_id, **(extra or {})})
    return len(docs)


def merge_duplicate_organizations(dry_run: bool = True, *, store=graph_store) -> Dict[str, Any]:
    """Collapse organizations with the same name into one keeper.

    The keeper is the record with the most sessions, then one with a logo,
    then one with a real website. Dependents are repointed before the
    duplicates are deleted; a missing logo or website is copied over.
    """
    merges: List[Dict[str, Any]] = []
    for name, members in _group_by_name(store.find_docs("Organization")).items():
        ranked = sorted(
            ((o, _session_count(o["id"], store)) for o in members),
            key=lambda pair: (-pair[1], not pair[0].get("logo_storage_id"), not _has_website(pair[0])),
        )
        keep = ranked[0][0]
        duplicates = [o for o, _ in ranked[1:]]
        sessions_moved = 0
        camps_moved = 0
        keeper_patch: Dict[str, Any] = {}
        for dup in duplicates:
            sessions_moved += _repoint(dup["id"], keep["id"], "Session", dry_run, store, {"organization_name": keep.get("name")})
            camps_moved += _repoint(dup["id"], keep["id"], "Camp", dry_run, store)
            _repoint(dup["id"], keep["id"], "Location", dry_run, store)
            _repoint(dup["id"], keep["id"], "ScrapeSource", dry_run, store)
            if not keep.get("logo_storage_id") and not keeper_patch.get("logo_storage_id") and dup.get("logo_storage_id"):
                keeper_patch["logo_storage_id"] = dup["logo_storage_id"]
            if not _has_website(keep) and not keeper_patch.get("website") and _has_website(dup):
                keeper_patch["website"] = dup["website"]
            city_ids = set(keep.get("city_ids") or []) | set(keeper_patch.get("city_ids") or []) | set(dup.get("city_ids") or [])
            if city_ids != set(keep.get("city_ids") or []):
                keeper_patch["city_ids"] = sorted(city_ids)
        if not dry_run:
            if keeper_patch:
                store.patch_doc("Organization", keep["id"], keeper_patch)
            for dup in duplicates:
                store.delete_doc("Organization", dup["id"])
            logger.info("Merged %d duplicate(s) of organization %r into %s", len(duplicates), name, keep["id"])
        merges.append({
            "name": name,
            "keep_id": keep["id"],
            "delete_ids": [d["id"] for d in duplicates],
            "sessions_reassigned": sessions_moved,
            "camps_reassigned": camps_moved,
        })
    return {"dry_run": dry_run, "merge_count": len(merges), "merges": merges}


def reassign_organization(
    from_id: str,
    to_id: str,
    source_id: Optional[str] = None,
    dry_run: bool = True,
    *,
    store=graph_store,
) -> Dict[str, Any]:
    """Move everything owned by one organization to another.

    When ``source_id`` is given only that scrape source's sessions move, along
    with the camps and locations those sessions use.
    """
    source_org = store.get_doc("Organization", from_id)
    if not source_org:
        raise NotFoundError("Source organization not found")
    target_org = store.get_doc("Organization", to_id)
    if not target_org:
        raise NotFoundError("Target organization not found")

    if source_id is None:
        counts = {
            "sessions": _repoint(from_id, to_id, "Session", dry_run, store, {"organization_name": target_org.get("name")}),
            "camps": _repoint(from_id, to_id, "Camp", dry_run, store),
            "locations": _repoint(from_id, to_id, "Location", dry_run, store),
            "sources": _repoint(from_id, to_id, "ScrapeSource", dry_run, store),
        }
    else:
        sessions = store.find_docs("Session", {"organization_id": from_id, "source_id": source_id})
        camp_ids = {s.get("camp_id") for s in sessions if s.get("camp_id")}
        location_ids = {s.get("location_id") for s in sessions if s.get("location_id")}
        if not dry_run:
            for s in sessions:
                store.patch_doc("Session", s["id"], {"organization_id": to_id, "organization_name": target_org.get("name")})
            for cid in camp_ids:
                store.patch_doc("Camp", cid, {"organization_id": to_id})
            for lid in location_ids:
                store.patch_doc("Location", lid, {"organization_id": to_id})
            store.patch_doc("ScrapeSource", source_id, {"organization_id": to_id})
        counts = {"sessions": len(sessions), "camps": len(camp_ids), "locations": len(location_ids), "sources": 1}
    return {
        "dry_run": dry_run,
        "from": {"id": from_id, "name": source_org.get("name")},
        "to": {"id": to_id, "name": target_org.get("name")},
        "reassigned": counts,
    }


def cleanup_orphans(dry_run: bool = True, *, store=graph_store) -> Dict[str, Any]:
    """Delete sessions, camps and locations whose organization no longer exists."""
    org_ids = {o["id"] for o in store.find_docs("Organization")}
    deleted: Dict[str, int] = {}
    for label in ("Session", "Camp", "Location"):
        orphans = [d for d in store.find_docs(label) if d.get("organization_id") not in org_ids]
        if not dry_run:
            for doc in orphans:
                store.delete_doc(label, doc["id"])
        deleted[label.lower() + "s"] = len(orphans)
    return {"dry_run": dry_run, "deleted": deleted}
