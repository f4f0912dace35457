import re

import pytest

from pdxcamps.services.errors import NotFoundError
from pdxcamps.services.referral_service import (
    MAX_REFERRAL_CREDITS,
    attribute_referral,
    complete_referral,
    generate_referral_code,
    get_referral_stats,
)


def _family(store, email):
    return store.insert_doc("Family", {"email": email, "display_name": email.split("@")[0]})


def test_code_is_stable_hex(store):
    fid = _family(store, "a@example.com")
    code = generate_referral_code(fid, store=store)
    assert re.fullmatch(r"[0-9a-f]{16}", code)
    assert generate_referral_code(fid, store=store) == code
    with pytest.raises(NotFoundError):
        generate_referral_code("missing", store=store)


def test_attribution_rules(store):
    referrer = _family(store, "a@example.com")
    referee = _family(store, "b@example.com")
    code = generate_referral_code(referrer, store=store)

    assert attribute_referral(referee, "ffffffffffffffff", store=store) is None
    assert attribute_referral(referrer, code, store=store) is None
    # codes are matched case-insensitively
    event_id = attribute_referral(referee, code.upper(), store=store)
    assert event_id
    assert attribute_referral(referee, code, store=store) is None
    assert store.get_doc("ReferralEvent", event_id)["status"] == "pending"


def test_complete_referral_credits_referrer(store):
    referrer = _family(store, "a@example.com")
    referee = _family(store, "b@example.com")
    attribute_referral(referee, generate_referral_code(referrer, store=store), store=store)

    res = complete_referral(referee, store=store)
    assert res == {"referrer_id": referrer, "new_credits_earned": 1}
    assert complete_referral(referee, store=store) is None

    stats = get_referral_stats(referrer, store=store)
    assert stats["credits_earned"] == 1
    assert stats["credits_available"] == 1
    assert stats["completed_referrals"] == 1
    assert stats["pending_referrals"] == 0


def test_credits_stop_at_cap(store):
    referrer = _family(store, "a@example.com")
    code = generate_referral_code(referrer, store=store)
    ref = store.find_docs("Referral", {"referrer_family_id": referrer})[0]
    store.patch_doc("Referral", ref["id"], {"credits_earned": MAX_REFERRAL_CREDITS})

    referee = _family(store, "b@example.com")
    event_id = attribute_referral(referee, code, store=store)
    assert complete_referral(referee, store=store) is None
    # the event still completes even though no credit is added
    assert store.get_doc("ReferralEvent", event_id)["status"] == "completed"
    assert get_referral_stats(referrer, store=store)["credits_earned"] == MAX_REFERRAL_CREDITS


def test_stats_without_code(store):
    fid = _family(store, "a@example.com")
    stats = get_referral_stats(fid, store=store)
    assert stats["referral_code"] is None
    assert stats["credits_available"] == 0
