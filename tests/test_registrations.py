import pytest

from pdxcamps.services.errors import CampsError, ForbiddenError, NotFoundError, PaywallError
from pdxcamps.services.registration_service import (
    cancel_registration,
    capacity_status,
    join_waitlist,
    mark_interested,
    register,
    update_registration_notes,
    update_session_counts,
)


def _add_child(store, family_id, name):
    return store.insert_doc("Child", {"family_id": family_id, "first_name": name, "is_active": True})


def test_capacity_status_flips_only_active_and_sold_out():
    assert capacity_status("active", 2, 2) == "sold_out"
    assert capacity_status("sold_out", 1, 2) == "active"
    assert capacity_status("draft", 5, 2) == "draft"


def test_register_fills_then_waitlists(store, catalog, family):
    fid, sid = family["family_id"], catalog["session_id"]
    kids = [family["child_id"], _add_child(store, fid, "Leo"), _add_child(store, fid, "Ana")]

    first = register(fid, kids[0], sid, store=store)
    assert first["status"] == "registered"
    second = register(fid, kids[1], sid, store=store)
    assert second["status"] == "registered"
    session = store.get_doc("Session", sid)
    assert session["enrolled_count"] == 2
    assert session["status"] == "sold_out"

    third = register(fid, kids[2], sid, store=store)
    assert third == {"registration_id": third["registration_id"], "status": "waitlisted", "waitlist_position": 1}
    assert store.get_doc("Session", sid)["waitlist_count"] == 1


def test_register_twice_is_rejected(store, catalog, family):
    register(family["family_id"], family["child_id"], catalog["session_id"], store=store)
    with pytest.raises(CampsError, match="already registered"):
        register(family["family_id"], family["child_id"], catalog["session_id"], store=store)


def test_register_requires_open_session(store, catalog, family):
    store.patch_doc("Session", catalog["session_id"], {"status": "draft"})
    with pytest.raises(CampsError, match="not available"):
        register(family["family_id"], family["child_id"], catalog["session_id"], store=store)


def test_full_session_without_waitlist(store, catalog, family):
    store.patch_doc("Session", catalog["session_id"], {"enrolled_count": 2, "waitlist_enabled": False})
    with pytest.raises(CampsError, match="waitlist is not available"):
        register(family["family_id"], family["child_id"], catalog["session_id"], store=store)


def test_child_from_another_family_is_forbidden(store, catalog, family):
    with pytest.raises(ForbiddenError):
        register("someone-else", family["child_id"], catalog["session_id"], store=store)
    with pytest.raises(NotFoundError):
        register(family["family_id"], "missing", catalog["session_id"], store=store)


def test_interested_then_register_upgrades_same_row(store, catalog, family):
    saved = mark_interested(family["family_id"], family["child_id"], catalog["session_id"], "maybe", store=store)
    assert saved["status"] == "interested"
    with pytest.raises(CampsError, match="Registration already exists"):
        mark_interested(family["family_id"], family["child_id"], catalog["session_id"], store=store)
    reg = register(family["family_id"], family["child_id"], catalog["session_id"], store=store)
    assert reg["registration_id"] == saved["registration_id"]
    row = store.get_doc("Registration", saved["registration_id"])
    assert row["status"] == "registered"
    assert row["notes"] == "maybe"
    assert len(store.all("Registration")) == 1


def test_mark_interested_hits_paywall(store, catalog, family):
    fid = family["family_id"]
    for i in range(5):
        store.insert_doc("Registration", {"family_id": fid, "child_id": f"c{i}", "session_id": f"s{i}", "status": "interested"})
    with pytest.raises(PaywallError) as excinfo:
        mark_interested(fid, family["child_id"], catalog["session_id"], store=store)
    assert excinfo.value.payload["code"] == "CAMP_LIMIT"
    assert excinfo.value.payload["saved_count"] == 5


def test_cancel_registered_frees_seat(store, catalog, family):
    fid, sid = family["family_id"], catalog["session_id"]
    leo = _add_child(store, fid, "Leo")
    a = register(fid, family["child_id"], sid, store=store)
    register(fid, leo, sid, store=store)
    assert store.get_doc("Session", sid)["status"] == "sold_out"

    res = cancel_registration(fid, a["registration_id"], store=store)
    assert res["previous_status"] == "registered"
    session = store.get_doc("Session", sid)
    assert session["enrolled_count"] == 1
    assert session["status"] == "active"
    with pytest.raises(CampsError, match="already cancelled"):
        cancel_registration(fid, a["registration_id"], store=store)


def test_cancel_waitlisted_compacts_positions(store, catalog, family):
    fid, sid = family["family_id"], catalog["session_id"]
    store.patch_doc("Session", sid, {"enrolled_count": 2, "status": "sold_out"})
    kids = [family["child_id"], _add_child(store, fid, "Leo"), _add_child(store, fid, "Ana")]
    regs = [register(fid, k, sid, store=store) for k in kids]
    assert [r["waitlist_position"] for r in regs] == [1, 2, 3]

    cancel_registration(fid, regs[0]["registration_id"], store=store)
    assert store.get_doc("Session", sid)["waitlist_count"] == 2
    assert store.get_doc("Registration", regs[1]["registration_id"])["waitlist_position"] == 1
    assert store.get_doc("Registration", regs[2]["registration_id"])["waitlist_position"] == 2
    cancelled = store.get_doc("Registration", regs[0]["registration_id"])
    assert "waitlist_position" not in cancelled


def test_join_waitlist(store, catalog, family):
    fid, sid = family["family_id"], catalog["session_id"]
    res = join_waitlist(fid, family["child_id"], sid, store=store)
    assert res["waitlist_position"] == 1
    with pytest.raises(CampsError, match="already on the waitlist"):
        join_waitlist(fid, family["child_id"], sid, store=store)

    store.patch_doc("Session", sid, {"waitlist_capacity": 1})
    with pytest.raises(CampsError, match="Waitlist is full"):
        join_waitlist(fid, _add_child(store, fid, "Leo"), sid, store=store)


def test_notes_require_ownership(store, catalog, family):
    reg = mark_interested(family["family_id"], family["child_id"], catalog["session_id"], store=store)
    updated = update_registration_notes(family["family_id"], reg["registration_id"], "bring sunscreen", store=store)
    assert updated["notes"] == "bring sunscreen"
    with pytest.raises(ForbiddenError):
        update_registration_notes("other", reg["registration_id"], "x", store=store)


def test_update_session_counts_clamps_at_zero(store, catalog):
    doc = update_session_counts(catalog["session_id"], enrolled_delta=-3, waitlist_delta=2, store=store)
    assert doc["enrolled_count"] == 0
    assert doc["waitlist_count"] == 2
    full = update_session_counts(catalog["session_id"], enrolled_delta=2, store=store)
    assert full["status"] == "sold_out"
