from typing import Any, Dict

from pdxcamps.db.neo4j_connector import run_cypher
from .schema import LABELS


def count_by_label() -> Dict[str, int]:
    """Return node counts for every camp document label."""
    counts: Dict[str, int] = {}
    for label in LABELS:
        res = run_cypher(f"MATCH (n:{label}) RETURN count(n) AS cnt")
        counts[label] = int((res[0].get("cnt") if res else 0) or 0)
    return counts


def clear_database() -> Dict[str, Any]:
    """Delete every camp document. Returns the per-label counts seen before deletion."""
    before = count_by_label()
    for label in LABELS:
        run_cypher(f"MATCH (n:{label}) DETACH DELETE n")
    return {"deleted_nodes": sum(before.values()), "by_label": before}
