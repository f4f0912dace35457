from typing import Dict, List, Tuple

from pdxcamps.db.neo4j_connector import run_cypher

# One node label per document kind.
LABELS: Tuple[str, ...] = (
    "City",
    "Organization",
    "Camp",
    "Location",
    "Session",
    "Family",
    "Child",
    "Registration",
    "CustomCamp",
    "FamilyEvent",
    "FamilyShare",
    "Subscription",
    "Referral",
    "ReferralEvent",
    "ScrapeSource",
    "ScrapeJob",
    "ScrapeRawData",
    "ScrapeAlert",
    "PendingSession",
    "DiscoveredSource",
    "DiscoverySearch",
)

# Properties looked up by equality often enough to deserve an index.
INDEXED_FIELDS: Dict[str, List[str]] = {
    "City": ["slug"],
    "Organization": ["name"],
    "Camp": ["organization_id"],
    "Location": ["organization_id"],
    "Session": ["camp_id", "location_id", "organization_id", "city_id", "source_id", "status"],
    "Child": ["family_id"],
    "Registration": ["session_id", "child_id", "family_id"],
    "CustomCamp": ["family_id"],
    "FamilyEvent": ["family_id"],
    "FamilyShare": ["share_token"],
    "Subscription": ["family_id"],
    "Referral": ["referrer_family_id", "referral_code"],
    "ReferralEvent": ["referee_family_id"],
    "ScrapeJob": ["source_id"],
    "ScrapeRawData": ["job_id"],
    "ScrapeAlert": ["source_id"],
    "PendingSession": ["source_id"],
    "DiscoveredSource": ["url", "status"],
    "DiscoverySearch": ["city_id"],
}


def ensure_schema() -> Dict[str, int]:
    """Create id uniqueness constraints and foreign-key indexes (idempotent)."""
    constraints = 0
    indexes = 0
    for label in LABELS:
        run_cypher(
            f"CREATE CONSTRAINT {label.lower()}_id IF NOT EXISTS "
            f"FOR (n:{label}) REQUIRE n.id IS UNIQUE"
        )
        constraints += 1
        for field in INDEXED_FIELDS.get(label, []):
            run_cypher(
                f"CREATE INDEX {label.lower()}_{field} IF NOT EXISTS "
                f"FOR (n:{label}) ON (n.{field})"
            )
            indexes += 1
    return {"constraints": constraints, "indexes": indexes}
