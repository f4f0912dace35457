import logging
import re
from typing import Any, Dict, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.geocoding_service import get_geocoder
from pdxcamps.services.helpers import is_default_coordinates

logger = logging.getLogger(__name__)

METRO_CITIES = (
    "Portland", "Beaverton", "Gresham", "Lake Oswego", "Tigard", "Hillsboro",
    "Milwaukie", "Oregon City", "Sandy", "McMinnville",
)
_CITY_RE = re.compile(r"(" + "|".join(METRO_CITIES) + r")", re.I)

_DIRECTION = r"(?:N|S|E|W|NE|NW|SE|SW)"
_SUFFIX = r"(?:St|Ave|Blvd|Rd|Dr|Way|Pkwy|Hwy|Ct|Ln|Pl|Cir|Parkway|Highway)"

# Tried in order against the location name; group 1 is the street, group 2 an optional zip.
ADDRESS_PATTERNS = (
    re.compile(rf"(\d+\s+{_DIRECTION}\.?\s+\d+(?:st|nd|rd|th)\s+Ave)", re.I),
    re.compile(rf"(\d+\s+{_DIRECTION}\.?\s+[A-Za-z]+(?:\s+[A-Za-z]+)*\s+{_SUFFIX}\.?)", re.I),
    re.compile(
        rf"(\d+\s+{_DIRECTION}?\s*[A-Za-z]+(?:\s+[A-Za-z]+)*\s+{_SUFFIX}\.?),?\s*"
        rf"(?:{'|'.join(METRO_CITIES)})?,?\s*(?:OR)?\s*(\d{{5}})?",
        re.I,
    ),
    re.compile(rf"(\d+\s+{_DIRECTION}\s+Broadway)", re.I),
)

# Venues whose names never contain an address.
KNOWN_ADDRESSES: Dict[str, Dict[str, str]] = {
    "OMSI": {"street": "1945 SE Water Ave", "city": "Portland", "zip": "97214"},
    "Oregon Zoo": {"street": "4001 SW Canyon Rd", "city": "Portland", "zip": "97221"},
    "Portland Center Stage": {"street": "128 NW 11th Ave", "city": "Portland", "zip": "97209"},
    "The Judy": {"street": "1000 SW Broadway", "city": "Portland", "zip": "97205"},
    "Charles Jordan Community Center": {"street": "9009 N Foss Ave", "city": "Portland", "zip": "97203"},
    "East Portland Community Center": {"street": "740 SE 106th Ave", "city": "Portland", "zip": "97216"},
    "Matt Dishman Community Center": {"street": "77 NE Knott St", "city": "Portland", "zip": "97212"},
    "Montavilla Community Center": {"street": "8219 NE Glisan St", "city": "Portland", "zip": "97220"},
    "Mt. Scott Community Center": {"street": "5530 SE 72nd Ave", "city": "Portland", "zip": "97206"},
    "Peninsula Park Community Center": {"street": "700 N Rosa Parks Way", "city": "Portland", "zip": "97217"},
    "Southwest Community Center": {"street": "6820 SW 45th Ave", "city": "Portland", "zip": "97219"},
    "St. Johns Community Center": {"street": "8427 N Central St", "city": "Portland", "zip": "97203"},
    "Woodstock Community Center": {"street": "5905 SE 43rd Ave", "city": "Portland", "zip": "97206"},
    "Multnomah Arts Center": {"street": "7688 SW Capitol Hwy", "city": "Portland", "zip": "97219"},
    "Westmoreland Park": {"street": "7530 SE 22nd Ave", "city": "Portland", "zip": "97202"},
    "Grant Park": {"street": "2561 NE 33rd Ave", "city": "Portland", "zip": "97212"},
    "Mittleman Jewish Community Center": {"street": "6651 SW Capitol Hwy", "city": "Portland", "zip": "97219"},
    "Oxbow Regional Park": {"street": "3010 SE Oxbow Pkwy", "city": "Gresham", "zip": "97080"},
    "University of Portland": {"street": "5000 N Willamette Blvd", "city": "Portland", "zip": "97203"},
    "Portland Parks & Recreation": {"street": "1120 SW 5th Ave", "city": "Portland", "zip": "97204"},
}


def has_real_street(location: Dict[str, Any]) -> bool:
    street = ((location.get("address") or {}).get("street") or "").strip()
    return bool(street) and "TBD" not in street


def is_bad_location(location: Dict[str, Any]) -> bool:
    return not has_real_street(location) or is_default_coordinates(location.get("latitude"), location.get("longitude"))


def _full_address(location: Dict[str, Any]) -> str:
    addr = location.get("address") or {}
    return ", ".join(str(addr[k]) for k in ("street", "city", "state", "zip") if addr.get(k))


def find_bad_locations(*, store=graph_store) -> Dict[str, Any]:
    bad = [
        {"id": loc["id"], "name": loc.get("name"), "address": _full_address(loc) or None}
        for loc in store.find_docs("Location")
        if is_bad_location(loc)
    ]
    return {"count": len(bad), "locations": bad[:50]}


def delete_unused_bad_locations(dry_run: bool = True, *, store=graph_store) -> Dict[str, Any]:
    """Delete bad locations that no session points at."""
    used = {s.get("location_id") for s in store.find_docs("Session") if s.get("location_id")}
    doomed = [loc for loc in store.find_docs("Location") if is_bad_location(loc) and loc["id"] not in used]
    if not dry_run:
        for loc in doomed:
            store.delete_doc("Location", loc["id"])
    return {
        "dry_run": dry_run,
        "deleted": len(doomed),
        "deleted_locations": [{"id": loc["id"], "name": loc.get("name")} for loc in doomed][:50],
    }


def find_locations_needing_geocode(*, store=graph_store) -> Dict[str, Any]:
    """Locations with a usable street address but placeholder coordinates."""
    todo = [
        {"id": loc["id"], "name": loc.get("name"), "address": _full_address(loc)}
        for loc in store.find_docs("Location")
        if has_real_street(loc) and is_default_coordinates(loc.get("latitude"), loc.get("longitude"))
    ]
    return {"count": len(todo), "locations": todo}


def batch_geocode_locations(limit: int = 50, *, store=graph_store, geocoder=None) -> Dict[str, Any]:
    geocoder = geocoder or get_geocoder()
    todo = find_locations_needing_geocode(store=store)["locations"][:limit]
    succeeded = 0
    failed = 0
    errors: List[str] = []
    for loc in todo:
        try:
            hit = geocoder.geocode_query(loc["address"])
        except Exception as exc:
            failed += 1
            errors.append(f"{loc['name']}: {str(exc)[:100]}")
            continue
        if hit and hit.get("latitude") and hit.get("longitude"):
            store.patch_doc("Location", loc["id"], {"latitude": hit["latitude"], "longitude": hit["longitude"]})
            succeeded += 1
        else:
            failed += 1
            errors.append(f"No result for: {loc['name']}")
    logger.info("Geocoded %d/%d location(s)", succeeded, len(todo))
    return {"processed": len(todo), "succeeded": succeeded, "failed": failed, "errors": errors[:10]}


def extract_address(name: str) -> Optional[Dict[str, str]]:
    """Pull a street address out of a location name, using known venues first."""
    for venue, addr in KNOWN_ADDRESSES.items():
        if venue in name:
            return {"street": addr["street"], "city": addr["city"], "state": "OR", "zip": addr["zip"]}
    for pattern in ADDRESS_PATTERNS:
        m = pattern.search(name)
        if m and m.group(1):
            zip_code = m.group(2) if m.lastindex and m.lastindex >= 2 else None
            city = _CITY_RE.search(name)
            return {
                "street": m.group(1).strip(),
                "city": city.group(1) if city else "Portland",
                "state": "OR",
                "zip": zip_code or "",
            }
    return None


def fix_location_addresses(dry_run: bool = True, *, store=graph_store) -> Dict[str, Any]:
    fixed: List[Dict[str, Any]] = []
    for loc in store.find_docs("Location"):
        if has_real_street(loc):
            continue
        addr = extract_address(loc.get("name") or "")
        if not addr:
            continue
        if not dry_run:
            store.patch_doc("Location", loc["id"], {"address": addr})
        fixed.append({
            "name": loc.get("name"),
            "extracted_address": f"{addr['street']}, {addr['city']}, OR {addr['zip']}".strip(),
        })
    return {"dry_run": dry_run, "fixed": len(fixed), "fixed_locations": fixed[:20]}


def _location_rank(loc: Dict[str, Any], session_count: int):
    return (
        -session_count,
        not has_real_street(loc),
        is_default_coordinates(loc.get("latitude"), loc.get("longitude")),
        loc.get("created_at") or 0,
    )


def _duplicate_groups(locations: List[Dict[str, Any]], store) -> List[Dict[str, Any]]:
    by_key: Dict[str, List[Dict[str, Any]]] = {}
    for loc in locations:
        key = f"{loc.get('organization_id')}|{(loc.get('name') or '').strip().lower()}"
        by_key.setdefault(key, []).append(loc)
    groups = []
    for members in by_key.values():
        if len(members) < 2:
            continue
        groups.append({
            "name": members[0].get("name"),
            "organization_id": members[0].get("organization_id"),
            "count": len(members),
            "locations": [
                {
                    "id": loc["id"],
                    "address": _full_address(loc) or "No address",
                    "has_coords": not is_default_coordinates(loc.get("latitude"), loc.get("longitude")),
                    "session_count": len(store.find_docs("Session", {"location_id": loc["id"]})),
                }
                for loc in members
            ],
        })
    groups.sort(key=lambda g: -g["count"])
    return groups


def find_duplicate_locations(organization_id: Optional[str] = None, *, store=graph_store) -> Dict[str, Any]:
    """Locations of the same organization with the same (case-insensitive) name.

    The report lists the 50 largest groups.
    """
    locations = store.find_docs("Location", {"organization_id": organization_id} if organization_id else None)
    groups = _duplicate_groups(locations, store)
    return {
        "total_locations": len(locations),
        "duplicate_groups": len(groups),
        "total_duplicates_to_remove": sum(g["count"] - 1 for g in groups),
        "groups": groups[:50],
    }


def merge_duplicate_locations(dry_run: bool = True, *, store=graph_store) -> Dict[str, Any]:
    """Keep the best-used, best-addressed location per group and repoint sessions to it.

    Every duplicate group is merged, not only those listed by ``find_duplicate_locations``.
    """
    groups = _duplicate_groups(store.find_docs("Location"), store)
    merged = 0
    deleted = 0
    moved = 0
    for group in groups:
        ranked = sorted(
            group["locations"],
            key=lambda info: _location_rank(store.get_doc("Location", info["id"]), info["session_count"]),
        )
        keep = store.get_doc("Location", ranked[0]["id"])
        for info in ranked[1:]:
            sessions = store.find_docs("Session", {"location_id": info["id"]})
            if not dry_run:
                for s in sessions:
                    store.patch_doc("Session", s["id"], {"location_id": keep["id"], "location_name": keep.get("name")})
                store.delete_doc("Location", info["id"])
            moved += len(sessions)
            deleted += 1
        merged += 1
    return {
        "dry_run": dry_run,
        "duplicate_groups_merged": merged,
        "locations_deleted": deleted,
        "sessions_reassigned": moved,
    }
