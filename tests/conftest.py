import copy
import itertools
import uuid

import pytest


class MemoryStore:
    """In-memory stand-in for ``pdxcamps.services.graph`` (same five document functions)."""

    def __init__(self):
        self.tables = {}
        # strictly increasing so "oldest first" ordering is deterministic
        self._clock = itertools.count(1_700_000_000_000)

    def insert_doc(self, label, doc):
        doc_id = doc.get("id") or uuid.uuid4().hex
        stored = {k: copy.deepcopy(v) for k, v in doc.items() if v is not None}
        stored["id"] = doc_id
        stored.setdefault("created_at", next(self._clock))
        self.tables.setdefault(label, {})[doc_id] = stored
        return doc_id

    def get_doc(self, label, doc_id):
        if not doc_id:
            return {}
        return copy.deepcopy(self.tables.get(label, {}).get(doc_id, {}))

    def patch_doc(self, label, doc_id, patch):
        doc = self.tables.get(label, {}).get(doc_id)
        if doc is None:
            return {}
        for k, v in patch.items():
            if k == "id":
                continue
            if v is None:
                doc.pop(k, None)
            else:
                doc[k] = copy.deepcopy(v)
        return copy.deepcopy(doc)

    def delete_doc(self, label, doc_id):
        return self.tables.get(label, {}).pop(doc_id, None) is not None

    @staticmethod
    def _matches(doc, filters):
        for key, value in (filters or {}).items():
            if key.endswith("__in"):
                if doc.get(key[:-4]) not in list(value):
                    return False
            elif key.endswith("__contains"):
                if value not in (doc.get(key[:-10]) or []):
                    return False
            elif value is None:
                if doc.get(key) is not None:
                    return False
            elif doc.get(key) != value:
                return False
        return True

    def find_docs(self, label, filters=None, *, order_by=None, limit=None):
        rows = [d for d in self.tables.get(label, {}).values() if self._matches(d, filters)]
        field = order_by or "created_at"
        rows.sort(key=lambda d: (d.get(field) is None, d.get(field) if d.get(field) is not None else 0, d["id"]))
        if limit is not None:
            rows = rows[: int(limit)]
        return [copy.deepcopy(d) for d in rows]

    def all(self, label):
        return self.find_docs(label)


class FakeLLM:
    """Returns queued replies in order; records every prompt it was sent.

    ``images`` queues image URLs (or exceptions to raise) for ``generate_image``.
    """

    def __init__(self, *replies, images=()):
        self.replies = list(replies)
        self.prompts = []
        self.images = list(images)
        self.image_prompts = []

    def generate(self, messages, *, temperature=0.2, max_tokens=600, extra_body=None, model=None):
        self.prompts.append(messages[-1]["content"])
        text = self.replies.pop(0) if self.replies else "[]"
        return text, {"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3}, model or "fake-model"

    def generate_image(self, prompt, *, size="1792x1024", model=None):
        self.image_prompts.append(prompt)
        result = self.images.pop(0) if self.images else "https://images.example/camp.png"
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def city(store):
    city_id = store.insert_doc("City", {"name": "Portland", "slug": "portland"})
    return store.get_doc("City", city_id)


@pytest.fixture
def catalog(store, city):
    """One organization with a camp, a location and an active session (capacity 2)."""
    org_id = store.insert_doc("Organization", {"name": "OMSI", "slug": "omsi", "city_ids": [city["id"]], "is_active": True})
    camp_id = store.insert_doc("Camp", {
        "organization_id": org_id,
        "name": "Robotics Camp",
        "categories": ["STEM"],
        "age_requirements": {"min_age": 8, "max_age": 12},
    })
    loc_id = store.insert_doc("Location", {
        "organization_id": org_id,
        "city_id": city["id"],
        "name": "OMSI Main",
        "address": {"street": "1945 SE Water Ave", "city": "Portland", "state": "OR", "zip": "97214"},
        "latitude": 45.508,
        "longitude": -122.665,
    })
    session_id = store.insert_doc("Session", {
        "camp_id": camp_id,
        "location_id": loc_id,
        "organization_id": org_id,
        "city_id": city["id"],
        "start_date": "2025-07-07",
        "end_date": "2025-07-11",
        "drop_off_time": {"hour": 9, "minute": 0},
        "pick_up_time": {"hour": 15, "minute": 0},
        "price": 35000,
        "capacity": 2,
        "enrolled_count": 0,
        "waitlist_count": 0,
        "waitlist_enabled": True,
        "status": "active",
        "age_requirements": {"min_age": 8, "max_age": 12},
        "camp_name": "Robotics Camp",
        "organization_name": "OMSI",
        "location_name": "OMSI Main",
    })
    return {"city_id": city["id"], "org_id": org_id, "camp_id": camp_id, "location_id": loc_id, "session_id": session_id}


@pytest.fixture
def family(store, city):
    family_id = store.insert_doc("Family", {"email": "a@example.com", "display_name": "Rivera", "primary_city_id": city["id"]})
    child_id = store.insert_doc("Child", {
        "family_id": family_id,
        "first_name": "Maya",
        "birthdate": "2015-03-01",
        "current_grade": 4,
        "is_active": True,
    })
    return {"family_id": family_id, "child_id": child_id}
