import logging
import secrets
import time
from typing import Any, Dict, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import NotFoundError

logger = logging.getLogger(__name__)

MAX_REFERRAL_CREDITS = 8


def _now_ms() -> int:
    return int(time.time() * 1000)


def _referral_for(family_id: str, store) -> Dict[str, Any]:
    rows = store.find_docs("Referral", {"referrer_family_id": family_id})
    return rows[0] if rows else {}


def generate_referral_code(family_id: str, *, store=graph_store) -> str:
    """Return the family's referral code, creating one on first use."""
    if not store.get_doc("Family", family_id):
        raise NotFoundError("Family not found")
    existing = _referral_for(family_id, store)
    if existing:
        return existing["referral_code"]
    code = secrets.token_hex(8)
    store.insert_doc("Referral", {
        "referrer_family_id": family_id,
        "referral_code": code,
        "credits_earned": 0,
        "credits_applied": 0,
        "created_at": _now_ms(),
    })
    return code


def attribute_referral(referee_family_id: str, referral_code: str, *, store=graph_store) -> Optional[str]:
    """Record that a new family signed up with a referral code.

    Returns the new event id, or None when the code is unknown, belongs to the
    referee, or the referee was already attributed.
    """
    matches = store.find_docs("Referral", {"referral_code": (referral_code or "").strip().lower()})
    if not matches:
        logger.info("Unknown referral code %r", referral_code)
        return None
    referral = matches[0]
    if referral["referrer_family_id"] == referee_family_id:
        return None
    if store.find_docs("ReferralEvent", {"referee_family_id": referee_family_id}):
        return None
    return store.insert_doc("ReferralEvent", {
        "referrer_family_id": referral["referrer_family_id"],
        "referee_family_id": referee_family_id,
        "referral_code": referral["referral_code"],
        "status": "pending",
        "created_at": _now_ms(),
    })


def complete_referral(referee_family_id: str, *, store=graph_store) -> Optional[Dict[str, Any]]:
    """Complete a pending referral (the referee subscribed) and credit the referrer.

    Referrers stop earning once they hold ``MAX_REFERRAL_CREDITS``; the event is
    still completed.
    """
    pending = store.find_docs("ReferralEvent", {"referee_family_id": referee_family_id, "status": "pending"})
    if not pending:
        return None
    event = pending[0]
    completed = {"status": "completed", "completed_at": _now_ms()}

    referral = _referral_for(event["referrer_family_id"], store)
    if not referral:
        logger.warning("Referral record not found for family %s", event["referrer_family_id"])
        return None
    if int(referral.get("credits_earned") or 0) >= MAX_REFERRAL_CREDITS:
        logger.info("Referrer %s has reached max credits", event["referrer_family_id"])
        store.patch_doc("ReferralEvent", event["id"], completed)
        return None

    new_credits = int(referral.get("credits_earned") or 0) + 1
    store.patch_doc("Referral", referral["id"], {"credits_earned": new_credits})
    store.patch_doc("ReferralEvent", event["id"], completed)

    referrer = store.get_doc("Family", event["referrer_family_id"])
    if referrer:
        logger.info(
            "Referral credit earned: notify %s (%d/%d credits)",
            referrer.get("email"), new_credits, MAX_REFERRAL_CREDITS,
        )
    return {"referrer_id": event["referrer_family_id"], "new_credits_earned": new_credits}


def get_referral_stats(family_id: str, *, store=graph_store) -> Dict[str, Any]:
    referral = _referral_for(family_id, store)
    events = store.find_docs("ReferralEvent", {"referrer_family_id": family_id})
    earned = int(referral.get("credits_earned") or 0) if referral else 0
    applied = int(referral.get("credits_applied") or 0) if referral else 0
    return {
        "referral_code": referral.get("referral_code") if referral else None,
        "credits_earned": earned,
        "credits_applied": applied,
        "credits_available": earned - applied,
        "max_credits": MAX_REFERRAL_CREDITS,
        "pending_referrals": sum(1 for e in events if e.get("status") == "pending"),
        "completed_referrals": sum(1 for e in events if e.get("status") == "completed"),
    }
