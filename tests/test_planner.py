from datetime import date

import pytest

from pdxcamps.services.errors import NotFoundError
from pdxcamps.services.planner_service import coverage_status, get_summer_coverage


TODAY = date(2025, 6, 1)


def _session(store, catalog, start, end, **extra):
    doc = {
        "camp_id": catalog["camp_id"],
        "location_id": catalog["location_id"],
        "organization_id": catalog["org_id"],
        "city_id": catalog["city_id"],
        "start_date": start,
        "end_date": end,
        "status": "active",
        "capacity": 10,
        "enrolled_count": 0,
        "camp_name": "Robotics Camp",
        "age_requirements": {"min_age": 8, "max_age": 12},
    }
    doc.update(extra)
    return store.insert_doc("Session", doc)


def _reg(store, family, session_id, status):
    return store.insert_doc("Registration", {
        "family_id": family["family_id"], "child_id": family["child_id"], "session_id": session_id, "status": status,
    })


def _by_week(grid):
    return {row["week"]["start_date"]: row["child_coverage"][0] for row in grid}


def test_coverage_status_precedence():
    assert coverage_status(1, 5, 5, 0) == "event"
    assert coverage_status(1, 2, 5, 0) == "full"
    assert coverage_status(0, 0, 3, 5) == "partial"
    assert coverage_status(0, 0, 0, 5) == "tentative"
    assert coverage_status(0, 0, 0, 0) == "gap"


def test_summer_grid(store, catalog, family):
    _reg(store, family, catalog["session_id"], "registered")
    _reg(store, family, _session(store, catalog, "2025-07-14", "2025-07-18"), "interested")
    _reg(store, family, _session(store, catalog, "2025-07-21", "2025-07-23"), "registered")
    _reg(store, family, _session(store, catalog, "2025-07-28", "2025-08-01"), "cancelled")
    _session(store, catalog, "2025-06-16", "2025-06-20")
    _session(store, catalog, "2025-06-16", "2025-06-20", age_requirements={"min_age": 13})
    _session(store, catalog, "2025-06-16", "2025-06-20", enrolled_count=10)
    store.insert_doc("FamilyEvent", {
        "family_id": family["family_id"],
        "child_ids": [family["child_id"]],
        "title": "Beach week",
        "event_type": "vacation",
        "start_date": "2025-08-04",
        "end_date": "2025-08-08",
        "is_active": True,
    })

    grid = get_summer_coverage(family["family_id"], 2025, store=store, today=TODAY)
    assert len(grid) == 13
    weeks = _by_week(grid)

    full = weeks["2025-07-07"]
    assert full["status"] == "full"
    assert full["available_session_count"] is None
    assert full["registrations"][0]["organization_name"] == "OMSI"

    assert weeks["2025-07-14"]["status"] == "tentative"
    partial = weeks["2025-07-21"]
    assert partial["status"] == "partial"
    assert partial["covered_days"] == 3
    assert weeks["2025-07-28"]["status"] == "gap"

    event_week = [row for row in grid if row["week"]["start_date"] == "2025-08-04"][0]
    assert event_week["child_coverage"][0]["status"] == "event"
    assert event_week["has_family_event"] is True
    assert event_week["has_gap"] is False

    # only the open session Maya fits counts
    assert weeks["2025-06-16"]["status"] == "gap"
    assert weeks["2025-06-16"]["available_session_count"] == 1


def test_family_without_children(store, city):
    fid = store.insert_doc("Family", {"email": "b@example.com", "display_name": "Empty"})
    assert get_summer_coverage(fid, 2025, store=store) == []
    with pytest.raises(NotFoundError):
        get_summer_coverage("missing", 2025, store=store)


def test_sessions_with_unreadable_dates_are_ignored(store, catalog, family):
    _session(store, catalog, "2025-06-16", "2025-06-20")
    _session(store, catalog, "<UNKNOWN>", "<UNKNOWN>")
    _reg(store, family, _session(store, catalog, "TBD", "2025-06-20"), "registered")

    weeks = _by_week(get_summer_coverage(family["family_id"], 2025, store=store, today=TODAY))
    assert weeks["2025-06-16"]["status"] == "gap"
    assert weeks["2025-06-16"]["available_session_count"] == 1
    assert all(row["registrations"] == [] for row in weeks.values())
