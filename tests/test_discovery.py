import json

import pytest

from pdxcamps.services.discovery_service import (
    analyze_discovered_url,
    analyze_source,
    batch_analyze_discovered_urls,
    create_discovered_source,
    execute_discovery_search,
    extract_domain,
    list_discovered_sources,
    mark_as_duplicate,
    review_source,
)
from pdxcamps.services.errors import CampsError, NotFoundError

from conftest import FakeLLM


class FakeSearch:
    def __init__(self, hits=None, pages=None):
        self.hits = hits or []
        self.pages = pages or {}
        self.fetched = []

    def search(self, query, k=20):
        return self.hits[:k]

    def fetch_content(self, url):
        self.fetched.append(url)
        return self.pages.get(url)


ANALYSIS = json.dumps({
    "is_likely_camp_site": True,
    "confidence": 1.4,
    "detected_camp_names": ["Wild Week", "Forest Friends"],
    "has_schedule_info": True,
    "has_pricing_info": False,
    "page_type": "camp_provider_main",
    "suggested_scraper_approach": "selector list on /camps",
})


def test_extract_domain():
    assert extract_domain("https://www.trackerscamps.com/pdx?x=1") == "trackerscamps.com"
    assert extract_domain("omsi.edu/camps") == "omsi.edu"


def test_create_discovered_source_skips_known_urls(store, city):
    first = create_discovered_source(city["id"], "https://trackers.example/camps", "Trackers", store=store)
    assert first["created"] is True
    again = create_discovered_source(city["id"], "https://trackers.example/camps", "Trackers", store=store)
    assert again == {"created": False, "message": "URL already discovered", "existing_source_id": first["source_id"]}
    with pytest.raises(NotFoundError):
        create_discovered_source("nowhere", "https://x.example", "X", store=store)


def test_analyze_source_clamps_and_stores(store, city):
    sid = create_discovered_source(city["id"], "https://trackers.example", "Trackers", store=store)["source_id"]
    llm = FakeLLM("```json\n" + ANALYSIS + "\n```")
    analysis = analyze_source(sid, "Wild Week day camps for ages 6-12", llm, store=store)
    assert analysis["confidence"] == 1.0
    assert analysis["detected_camp_names"] == ["Wild Week", "Forest Friends"]
    assert "Wild Week day camps" in llm.prompts[0]
    doc = store.get_doc("DiscoveredSource", sid)
    assert doc["status"] == "pending_review"
    assert doc["ai_analysis"]["page_type"] == "camp_provider_main"


def test_unparseable_analysis_defaults(store, city):
    sid = create_discovered_source(city["id"], "https://blog.example", "Blog", store=store)["source_id"]
    analysis = analyze_source(sid, "recipes", FakeLLM("not sure, sorry"), store=store)
    assert analysis["is_likely_camp_site"] is False
    assert analysis["page_type"] == "unknown"
    assert analysis["confidence"] == 0.0


def test_review_approves_into_scrape_source(store, city):
    sid = create_discovered_source(city["id"], "https://trackers.example", "Trackers Earth", store=store)["source_id"]
    res = review_source(sid, "approved", "looks good", store=store)
    assert res["success"] is True
    scrape = store.get_doc("ScrapeSource", res["scrape_source_id"])
    assert scrape["name"] == "Trackers Earth"
    assert scrape["city_id"] == city["id"]
    with pytest.raises(CampsError, match="Source must be pending"):
        review_source(sid, "rejected", store=store)
    with pytest.raises(CampsError, match="Invalid review status"):
        review_source(sid, "maybe", store=store)


def test_mark_as_duplicate(store, city):
    a = create_discovered_source(city["id"], "https://a.example", "A", store=store)["source_id"]
    b = create_discovered_source(city["id"], "https://b.example", "B", store=store)["source_id"]
    doc = mark_as_duplicate(b, a, store=store)
    assert doc["status"] == "duplicate"
    assert doc["review_notes"] == f"Duplicate of source {a}"
    with pytest.raises(CampsError, match="itself"):
        mark_as_duplicate(a, a, store=store)
    assert [s["id"] for s in list_discovered_sources(status="duplicate", store=store)] == [b]


def test_search_keeps_first_hit_per_domain(store, city):
    create_discovered_source(city["id"], "https://omsi.edu/camps", "OMSI", store=store)
    searcher = FakeSearch([
        {"url": "https://www.trackers.example/pdx", "title": "Trackers", "snippet": "Outdoor camps"},
        {"url": "https://trackers.example/other", "title": "Trackers again"},
        {"url": "https://omsi.edu/camps", "title": "OMSI"},
        {"url": "", "title": "empty"},
    ])
    res = execute_discovery_search(city["id"], "portland summer camps", searcher=searcher, store=store)
    assert res == {"success": True, "results_count": 4, "new_sources_found": 1, "skipped_domains": ["trackers.example"]}
    log = store.all("DiscoverySearch")[0]
    assert log["query"] == "portland summer camps"
    assert log["new_sources_found"] == 1


def test_fetch_and_batch_analyze(store, city):
    ok = create_discovered_source(city["id"], "https://trackers.example", "Trackers", store=store)["source_id"]
    dead = create_discovered_source(city["id"], "https://dead.example", "Dead", store=store)["source_id"]
    searcher = FakeSearch(pages={"https://trackers.example": "Wild Week"})

    assert analyze_discovered_url(dead, searcher=searcher, llm=FakeLLM(), store=store) == {
        "success": False, "error": "Could not fetch https://dead.example",
    }

    sleeps = []
    res = batch_analyze_discovered_urls(
        [ok, dead, "missing"], 200, searcher=searcher, llm=FakeLLM(ANALYSIS), store=store, sleep=sleeps.append,
    )
    assert res["processed"] == 1
    assert res["failed"] == 2
    assert res["success"] is False
    assert res["results"][2]["error"] == "Discovered source not found"
    assert sleeps == [0.2, 0.2]
    assert store.get_doc("DiscoveredSource", ok)["ai_analysis"]["is_likely_camp_site"] is True
