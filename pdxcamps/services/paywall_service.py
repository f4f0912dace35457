import logging
from typing import Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import PaywallError

logger = logging.getLogger(__name__)

FREE_SAVED_CAMPS_LIMIT = 5

ACTIVE_REGISTRATION_STATUSES = ("interested", "registered", "waitlisted")
PREMIUM_SUBSCRIPTION_STATUSES = ("active", "trialing")


def is_premium(family_id: str, *, store=graph_store) -> bool:
    """True when the family has an active or trialing subscription.

    Lookup failures degrade to the free tier instead of blocking the user.
    """
    try:
        subs = store.find_docs("Subscription", {"family_id": family_id})
    except Exception as exc:
        logger.error("Failed to check subscription status for %s: %s", family_id, exc)
        return False
    return any(s.get("status") in PREMIUM_SUBSCRIPTION_STATUSES for s in subs)


def count_active_saved(family_id: str, *, store=graph_store) -> int:
    """Active registrations plus active, non-cancelled custom camps."""
    registrations = store.find_docs("Registration", {"family_id": family_id})
    active_regs = sum(1 for r in registrations if r.get("status") in ACTIVE_REGISTRATION_STATUSES)
    custom = store.find_docs("CustomCamp", {"family_id": family_id})
    active_custom = sum(1 for c in custom if c.get("is_active") and c.get("status") != "cancelled")
    return active_regs + active_custom


def enforce_camp_limit(family_id: str, *, limit: Optional[int] = None, store=graph_store) -> None:
    """Raise PaywallError when a free family is at or over the saved-camp limit."""
    if is_premium(family_id, store=store):
        return
    limit = FREE_SAVED_CAMPS_LIMIT if limit is None else limit
    saved = count_active_saved(family_id, store=store)
    if saved >= limit:
        logger.info("Paywall hit for family %s (%d/%d)", family_id, saved, limit)
        raise PaywallError(saved, limit)
