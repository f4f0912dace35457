from pdxcamps.services.import_service import create_scrape_job, import_from_job, import_from_source


SCRAPED = {
    "success": True,
    "organization": {"name": "Portland Parks & Recreation", "website": "https://www.portland.gov/parks"},
    "sessions": [
        {
            "name": "Nature Explorers",
            "source_product_id": "NE-1",
            "start_date": "2025-06-23",
            "end_date": "2025-06-27",
            "location": "Westmoreland Park",
            "price_in_cents": 18500,
            "min_age": 6,
            "max_age": 9,
            "category": "Nature",
        },
        {
            "name": "Nature Explorers",
            "source_product_id": "NE-1",
            "start_date": "2025-07-07",
            "location": "Westmoreland Park",
            "drop_off_hour": 8,
            "pick_up_hour": 12,
            "pick_up_minute": 30,
        },
        {"name": "Skate Camp", "location": "Grant Park"},
    ],
}


def _source(store, city_id, **extra):
    return store.insert_doc("ScrapeSource", dict({"name": "PP&R summer", "url": "https://www.portland.gov/parks/camps", "city_id": city_id}, **extra))


def test_import_creates_catalog(store, city):
    source_id = _source(store, city["id"])
    job_id = create_scrape_job(source_id, SCRAPED, store=store)
    assert store.get_doc("ScrapeJob", job_id)["sessions_found"] == 3

    res = import_from_job(job_id, store=store)
    assert res["success"] is True
    assert res["camps_created"] == 2
    assert res["locations_created"] == 2
    # the session without a start date is skipped
    assert res["sessions_created"] == 2
    assert res["errors"] == []

    org = store.get_doc("Organization", res["organization_id"])
    assert org["name"] == "Portland Parks & Recreation"
    assert store.get_doc("ScrapeSource", source_id)["organization_id"] == org["id"]

    sessions = store.find_docs("Session", {"source_id": source_id}, order_by="start_date")
    first, second = sessions
    assert first["price"] == 18500
    assert first["drop_off_time"] == {"hour": 9, "minute": 0}
    assert first["city_id"] == city["id"]
    assert second["end_date"] == "2025-07-07"
    assert second["pick_up_time"] == {"hour": 12, "minute": 30}
    assert first["camp_id"] == second["camp_id"]

    camp = store.get_doc("Camp", first["camp_id"])
    assert camp["categories"] == ["Nature"]
    loc = store.get_doc("Location", first["location_id"])
    assert loc["address"]["street"] == "TBD"


def test_import_uses_existing_organization(store, catalog):
    source_id = _source(store, catalog["city_id"], organization_id=catalog["org_id"])
    res = import_from_job(create_scrape_job(source_id, SCRAPED, store=store), store=store)
    assert res["organization_id"] == catalog["org_id"]
    assert len(store.all("Organization")) == 1


def test_import_failures_are_reported(store, city):
    assert import_from_job("missing", store=store)["errors"] == ["No raw data found"]

    source_id = _source(store, city["id"])
    empty = create_scrape_job(source_id, {"success": True, "sessions": []}, store=store)
    assert import_from_job(empty, store=store)["errors"] == ["No sessions in scrape result"]

    orphan = create_scrape_job("gone", SCRAPED, store=store)
    res = import_from_job(orphan, store=store)
    assert res["success"] is False
    assert res["errors"] == ["Source not found"]


def test_city_falls_back_to_portland(store, city):
    source_id = _source(store, None)
    res = import_from_job(create_scrape_job(source_id, SCRAPED, store=store), store=store)
    assert res["success"] is True
    assert store.find_docs("Session", {"source_id": source_id})[0]["city_id"] == city["id"]


def test_import_from_source_uses_latest_job(store, city):
    source_id = _source(store, city["id"])
    assert import_from_source(source_id, store=store)["error"] == "No completed jobs found for this source"
    create_scrape_job(source_id, {"success": True, "sessions": []}, store=store)
    latest = dict(SCRAPED, sessions=SCRAPED["sessions"][:1])
    job_id = create_scrape_job(source_id, latest, store=store)
    store.patch_doc("ScrapeJob", job_id, {"completed_at": 9_999_999_999_999})
    assert import_from_source(source_id, store=store)["sessions_created"] == 1


def test_unreadable_dates_are_held_for_review(store, city):
    source_id = _source(store, city["id"])
    scraped = {"success": True, "sessions": [
        {"name": "Mystery Camp", "start_date": "<UNKNOWN>", "location": "Laurelhurst Park"},
        {"name": "Slash Camp", "start_date": "07/14/2025", "end_date": "07/18/2025", "location": "Laurelhurst Park"},
    ]}
    job_id = create_scrape_job(source_id, scraped, store=store)

    res = import_from_job(job_id, store=store)
    assert res["success"] is True
    assert res["sessions_created"] == 0
    assert res["sessions_pending"] == 2
    assert len(res["errors"]) == 2
    assert "Mystery Camp" in res["errors"][0]
    assert store.find_docs("Session", {"source_id": source_id}) == []

    pending = store.find_docs("PendingSession", {"job_id": job_id})
    assert [p["partial_data"]["name"] for p in pending] == ["Mystery Camp", "Slash Camp"]
    assert all(p["status"] == "pending_review" for p in pending)


def test_sessions_carry_completeness_and_sparse_rows_wait(store, city):
    source_id = _source(store, city["id"])
    scraped = {"success": True, "sessions": [
        dict(SCRAPED["sessions"][0], drop_off_hour=9, pick_up_hour=15, location="Westmoreland Park, 7530 SE 22nd Ave"),
        {"name": "Sparse Camp", "start_date": "2025-08-04"},
    ]}
    res = import_from_job(create_scrape_job(source_id, scraped, store=store), store=store)
    assert res["sessions_created"] == 1
    assert res["sessions_pending"] == 1
    assert res["errors"] == []

    session = store.find_docs("Session", {"source_id": source_id})[0]
    assert session["completeness_score"] == 100
    assert session["missing_fields"] == []
    assert session["data_source"] == "scraped"
    assert session["status"] == "active"
    assert session["camp_name"] == "Nature Explorers"


def test_reimport_updates_instead_of_duplicating(store, city):
    source_id = _source(store, city["id"])
    first = import_from_job(create_scrape_job(source_id, SCRAPED, store=store), store=store)
    assert first["sessions_created"] == 2

    rescraped = dict(SCRAPED, sessions=[
        dict(SCRAPED["sessions"][0], price_in_cents=19500),
        SCRAPED["sessions"][0],
    ])
    again = import_from_job(create_scrape_job(source_id, rescraped, store=store), store=store)
    assert again["sessions_created"] == 0
    assert again["sessions_updated"] == 1
    assert again["camps_created"] == 0
    assert again["locations_created"] == 0

    sessions = store.find_docs("Session", {"source_id": source_id}, order_by="start_date")
    assert len(sessions) == 2
    assert sessions[0]["price"] == 19500
