import pytest

from pdxcamps.services.cleanup.camps import deduplicate_camps
from pdxcamps.services.cleanup.categories import apply_camp_categories, get_uncategorized_camps_batch, is_uncategorized
from pdxcamps.services.cleanup.locations import (
    batch_geocode_locations,
    delete_unused_bad_locations,
    extract_address,
    find_bad_locations,
    find_duplicate_locations,
    find_locations_needing_geocode,
    fix_location_addresses,
    merge_duplicate_locations,
)
from pdxcamps.services.cleanup.organizations import (
    cleanup_orphans,
    find_duplicate_organizations,
    merge_duplicate_organizations,
    reassign_organization,
)
from pdxcamps.services.cleanup.sessions import (
    delete_bad_sessions,
    delete_old_sessions,
    find_bad_sessions,
    find_duplicate_sessions,
    merge_duplicate_sessions,
    score_session,
    trace_session_source,
)
from pdxcamps.services.errors import NotFoundError
from pdxcamps.services.helpers import DEFAULT_LATITUDE, DEFAULT_LONGITUDE


NOW_MS = 1_750_000_000_000


def _copy_session(store, catalog, **overrides):
    doc = store.get_doc("Session", catalog["session_id"])
    doc.pop("id")
    doc.pop("created_at")
    doc.update(overrides)
    return store.insert_doc("Session", doc)


# organizations

def test_merge_duplicate_organizations(store, catalog):
    dup = store.insert_doc("Organization", {"name": "OMSI", "website": "https://omsi.edu", "city_ids": ["vancouver"]})
    dup_camp = store.insert_doc("Camp", {"organization_id": dup, "name": "Chemistry"})

    found = find_duplicate_organizations(store=store)
    assert found["duplicate_groups"] == 1
    assert found["groups"][0]["count"] == 2

    preview = merge_duplicate_organizations(store=store)
    assert preview["merges"][0]["keep_id"] == catalog["org_id"]
    assert store.get_doc("Organization", dup)

    res = merge_duplicate_organizations(dry_run=False, store=store)
    assert res["merges"][0]["camps_reassigned"] == 1
    assert not store.get_doc("Organization", dup)
    keeper = store.get_doc("Organization", catalog["org_id"])
    assert keeper["website"] == "https://omsi.edu"
    assert set(keeper["city_ids"]) == {catalog["city_id"], "vancouver"}
    assert store.get_doc("Camp", dup_camp)["organization_id"] == catalog["org_id"]


def test_reassign_by_source(store, catalog):
    target = store.insert_doc("Organization", {"name": "Oregon Museum of Science"})
    source = store.insert_doc("ScrapeSource", {"name": "OMSI camps", "organization_id": catalog["org_id"]})
    store.patch_doc("Session", catalog["session_id"], {"source_id": source})

    res = reassign_organization(catalog["org_id"], target, source_id=source, dry_run=False, store=store)
    assert res["reassigned"] == {"sessions": 1, "camps": 1, "locations": 1, "sources": 1}
    session = store.get_doc("Session", catalog["session_id"])
    assert session["organization_id"] == target
    assert session["organization_name"] == "Oregon Museum of Science"
    assert store.get_doc("Camp", catalog["camp_id"])["organization_id"] == target

    with pytest.raises(NotFoundError, match="Target organization"):
        reassign_organization(catalog["org_id"], "missing", store=store)


def test_cleanup_orphans(store, catalog):
    store.delete_doc("Organization", catalog["org_id"])
    dry = cleanup_orphans(store=store)
    assert dry["deleted"] == {"sessions": 1, "camps": 1, "locations": 1}
    assert store.get_doc("Camp", catalog["camp_id"])
    cleanup_orphans(dry_run=False, store=store)
    assert not store.get_doc("Camp", catalog["camp_id"])


# camps

def test_deduplicate_camps_keeps_oldest(store, catalog):
    dup = store.insert_doc("Camp", {
        "organization_id": catalog["org_id"],
        "name": "Robotics Camp (Ages 8-12)",
        "image_urls": ["https://omsi.edu/robot.jpg"],
    })
    moved = _copy_session(store, catalog, camp_id=dup, start_date="2025-07-14", end_date="2025-07-18")

    res = deduplicate_camps(dry_run=False, store=store)
    assert res["total_deleted"] == 1
    assert res["total_repointed"] == 1
    assert res["sample"][0]["keep_id"] == catalog["camp_id"]
    assert not store.get_doc("Camp", dup)
    assert store.get_doc("Session", moved)["camp_id"] == catalog["camp_id"]
    assert store.get_doc("Camp", catalog["camp_id"])["image_urls"] == ["https://omsi.edu/robot.jpg"]


def test_categories(store, catalog):
    assert is_uncategorized([])
    assert is_uncategorized(["General"])
    assert is_uncategorized(["Fun"])
    assert not is_uncategorized(["General", "Arts"])

    store.insert_doc("Camp", {"organization_id": catalog["org_id"], "name": "Mystery", "categories": ["General"]})
    batch = get_uncategorized_camps_batch(store=store)
    assert batch["total_remaining"] == 1
    assert batch["camps"][0]["org_name"] == "OMSI"

    res = apply_camp_categories([
        {"camp_id": catalog["camp_id"], "categories": ["STEM", "Academic"]},
        {"camp_id": "missing", "categories": ["Arts"]},
    ], store=store)
    assert res == {"updated_camps": 1, "updated_sessions": 1}
    assert store.get_doc("Session", catalog["session_id"])["camp_categories"] == ["STEM", "Academic"]


# sessions

def test_score_prefers_active_priced_sessions():
    active = {"status": "active", "price": 100, "completeness_score": 100}
    draft = {"status": "draft", "price": 0, "completeness_score": 100}
    assert score_session(active, NOW_MS) > score_session(draft, NOW_MS)
    fresh = {"last_scraped_at": NOW_MS}
    assert score_session(fresh, NOW_MS) == 30


def test_merge_duplicate_sessions_moves_registrations(store, catalog, family):
    dup = _copy_session(store, catalog, status="draft", price=0)
    reg = store.insert_doc("Registration", {
        "family_id": family["family_id"], "child_id": family["child_id"], "session_id": dup, "status": "registered",
    })

    found = find_duplicate_sessions(store=store)
    assert found["duplicate_groups"] == 1
    assert found["total_duplicates_to_remove"] == 1

    res = merge_duplicate_sessions(dry_run=False, store=store, now_ms=NOW_MS)
    assert res["sessions_deleted"] == 1
    assert res["registrations_reassigned"] == 1
    assert res["sample_merges"][0]["kept_id"] == catalog["session_id"]
    assert not store.get_doc("Session", dup)
    assert store.get_doc("Registration", reg)["session_id"] == catalog["session_id"]
    assert store.get_doc("Session", catalog["session_id"])["enrolled_count"] == 1


def test_merge_keeps_the_further_registration(store, catalog, family):
    dup = _copy_session(store, catalog, status="draft", price=0)
    kept_row = store.insert_doc("Registration", {
        "family_id": family["family_id"], "child_id": family["child_id"],
        "session_id": catalog["session_id"], "status": "interested",
    })
    dup_row = store.insert_doc("Registration", {
        "family_id": family["family_id"], "child_id": family["child_id"],
        "session_id": dup, "status": "registered", "registered_at": NOW_MS,
    })

    merge_duplicate_sessions(dry_run=False, store=store, now_ms=NOW_MS)
    rows = store.find_docs("Registration", {"child_id": family["child_id"]})
    assert [(r["id"], r["status"]) for r in rows] == [(kept_row, "registered")]
    assert rows[0]["registered_at"] == NOW_MS
    assert not store.get_doc("Registration", dup_row)
    assert store.get_doc("Session", catalog["session_id"])["enrolled_count"] == 1


def test_merge_upgrade_from_waitlist_releases_the_slot(store, catalog, family):
    dup = _copy_session(store, catalog, status="draft", price=0)
    store.patch_doc("Session", catalog["session_id"], {"waitlist_count": 2})
    store.insert_doc("Registration", {
        "family_id": family["family_id"], "child_id": family["child_id"],
        "session_id": catalog["session_id"], "status": "waitlisted", "waitlist_position": 1,
    })
    other = store.insert_doc("Registration", {
        "family_id": family["family_id"], "child_id": "sibling",
        "session_id": catalog["session_id"], "status": "waitlisted", "waitlist_position": 2,
    })
    store.insert_doc("Registration", {
        "family_id": family["family_id"], "child_id": family["child_id"], "session_id": dup, "status": "registered",
    })

    merge_duplicate_sessions(dry_run=False, store=store, now_ms=NOW_MS)
    keeper = store.get_doc("Session", catalog["session_id"])
    assert (keeper["enrolled_count"], keeper["waitlist_count"]) == (1, 1)
    assert store.get_doc("Registration", other)["waitlist_position"] == 1


def test_merge_drops_the_weaker_duplicate_row(store, catalog, family):
    dup = _copy_session(store, catalog, status="draft", price=0)
    store.insert_doc("Registration", {
        "family_id": family["family_id"], "child_id": family["child_id"],
        "session_id": catalog["session_id"], "status": "registered",
    })
    store.patch_doc("Session", catalog["session_id"], {"enrolled_count": 1})
    store.insert_doc("Registration", {
        "family_id": family["family_id"], "child_id": family["child_id"], "session_id": dup, "status": "interested",
    })

    merge_duplicate_sessions(dry_run=False, store=store, now_ms=NOW_MS)
    rows = store.find_docs("Registration", {"child_id": family["child_id"]})
    assert [r["status"] for r in rows] == ["registered"]
    assert store.get_doc("Session", catalog["session_id"])["enrolled_count"] == 1


def test_bad_and_old_sessions(store, catalog):
    placeholder = _copy_session(store, catalog, start_date="<UNKNOWN>")
    slashed = _copy_session(store, catalog, end_date="07/11/2025")
    old = _copy_session(store, catalog, start_date="2024-06-03", end_date="2024-06-07")

    bad = {b["id"]: b["issues"] for b in find_bad_sessions(store=store)["bad_sessions"]}
    assert set(bad) == {placeholder, slashed, old}
    assert "Past date: 2024-06-03" in bad[old]

    res = delete_bad_sessions(dry_run=False, store=store)
    assert res["deleted"] == 2
    assert store.get_doc("Session", old)

    res = delete_old_sessions(dry_run=False, store=store)
    assert res["deleted_ids"] == [old]
    assert len(store.all("Session")) == 1


def test_trace_session_source(store, catalog):
    source = store.insert_doc("ScrapeSource", {"name": "OMSI camps", "url": "https://omsi.edu/camps"})
    job = store.insert_doc("ScrapeJob", {"source_id": source, "status": "completed", "sessions_found": 4})
    store.insert_doc("ScrapeRawData", {"job_id": job, "raw_json": {"sessions": []}})
    store.patch_doc("Session", catalog["session_id"], {"source_id": source})

    trace = trace_session_source(catalog["session_id"], store=store)
    assert trace["organization"]["name"] == "OMSI"
    assert trace["source"]["url"] == "https://omsi.edu/camps"
    assert trace["recent_jobs"][0]["sessions_found"] == 4
    assert trace["raw_data_samples"][0]["preview"] == '{"sessions": []}'
    with pytest.raises(NotFoundError):
        trace_session_source("missing", store=store)


# locations

class FakeGeocoder:
    def __init__(self, hits):
        self.hits = hits
        self.queries = []

    def geocode_query(self, query):
        self.queries.append(query)
        return self.hits.get(query)


def _placeholder_location(store, org_id, name, street="TBD"):
    return store.insert_doc("Location", {
        "organization_id": org_id,
        "name": name,
        "address": {"street": street, "city": "Portland", "state": "OR", "zip": "97201"},
        "latitude": DEFAULT_LATITUDE,
        "longitude": DEFAULT_LONGITUDE,
    })


def test_bad_locations(store, catalog):
    unused = _placeholder_location(store, catalog["org_id"], "Main Location")
    used = _placeholder_location(store, catalog["org_id"], "Somewhere")
    _copy_session(store, catalog, location_id=used)

    assert {b["id"] for b in find_bad_locations(store=store)["locations"]} == {unused, used}
    res = delete_unused_bad_locations(dry_run=False, store=store)
    assert res["deleted"] == 1
    assert not store.get_doc("Location", unused)
    assert store.get_doc("Location", used)


def test_geocode_locations(store, catalog):
    loc = _placeholder_location(store, catalog["org_id"], "Wilson Pool", street="1151 SW Vermont St")
    _placeholder_location(store, catalog["org_id"], "Unknown Park", street="99 Nowhere Rd")
    assert find_locations_needing_geocode(store=store)["count"] == 2

    geocoder = FakeGeocoder({"1151 SW Vermont St, Portland, OR, 97201": {"latitude": 45.47, "longitude": -122.71}})
    res = batch_geocode_locations(store=store, geocoder=geocoder)
    assert res["succeeded"] == 1
    assert res["failed"] == 1
    assert res["errors"] == ["No result for: Unknown Park"]
    assert store.get_doc("Location", loc)["latitude"] == 45.47


def test_extract_address():
    assert extract_address("Oregon Zoo - Education Center")["street"] == "4001 SW Canyon Rd"
    addr = extract_address("Wilson Pool 1151 SW Vermont St")
    assert addr["street"] == "1151 SW Vermont St"
    assert addr["city"] == "Portland"
    assert extract_address("Main Location") is None


def test_fix_location_addresses(store, catalog):
    loc = _placeholder_location(store, catalog["org_id"], "Camp at OMSI")
    dry = fix_location_addresses(store=store)
    assert dry["fixed"] == 1
    assert store.get_doc("Location", loc)["address"]["street"] == "TBD"
    fix_location_addresses(dry_run=False, store=store)
    assert store.get_doc("Location", loc)["address"]["street"] == "1945 SE Water Ave"


def test_merge_duplicate_locations(store, catalog):
    dup = _placeholder_location(store, catalog["org_id"], "omsi main ")
    moved = _copy_session(store, catalog, location_id=dup, start_date="2025-07-14", end_date="2025-07-18")
    res = merge_duplicate_locations(dry_run=False, store=store)
    assert res == {"dry_run": False, "duplicate_groups_merged": 1, "locations_deleted": 1, "sessions_reassigned": 1}
    assert store.get_doc("Session", moved)["location_id"] == catalog["location_id"]
    assert not store.get_doc("Location", dup)


def test_merge_duplicate_locations_covers_groups_beyond_the_report(store, catalog):
    for i in range(55):
        _placeholder_location(store, catalog["org_id"], f"Annex {i}")
        _placeholder_location(store, catalog["org_id"], f"annex {i}")
    report = find_duplicate_locations(store=store)
    assert report["duplicate_groups"] == 55
    assert len(report["groups"]) == 50

    res = merge_duplicate_locations(dry_run=False, store=store)
    assert res["duplicate_groups_merged"] == 55
    assert res["locations_deleted"] == 55
    assert find_duplicate_locations(store=store)["duplicate_groups"] == 0
