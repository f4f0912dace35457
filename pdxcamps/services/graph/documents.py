"""Document-style access to camp data stored as Neo4j nodes.

Every record is a node labelled with its kind (see ``schema.LABELS``) and
carrying a string ``id``. References between records are ``*_id`` properties.

Neo4j properties cannot hold maps, so dict values (and lists of dicts) are
written as JSON strings tagged with ``JSON_PREFIX`` and parsed back on read.
Untagged strings are always returned as written.

Filters passed to ``find_docs`` are equality matches keyed by property name.
Two suffixes are understood:

    status__in=["active", "sold_out"]    property value is one of the list
    city_ids__contains="c1"              list property contains the value

A filter value of ``None`` matches nodes where the property is absent.
"""
import json
import re
import time
import uuid
from typing import Any, Dict, List, Optional

from pdxcamps.db.neo4j_connector import run_cypher
from .schema import LABELS

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
JSON_PREFIX = "json:"


def new_id() -> str:
    return uuid.uuid4().hex


def _label(label: str) -> str:
    if label not in LABELS:
        raise ValueError(f"Unknown document label: {label}")
    return label


def _field(name: str) -> str:
    if not _FIELD_RE.match(name or ""):
        raise ValueError(f"Invalid property name: {name!r}")
    return name


def _to_json(value: Any) -> str:
    return JSON_PREFIX + json.dumps(value, ensure_ascii=False)


def _encode(value: Any) -> Any:
    if isinstance(value, dict):
        return _to_json(value)
    if isinstance(value, (list, tuple)):
        if any(isinstance(v, (dict, list)) for v in value):
            return _to_json(list(value))
        return list(value)
    # text that happens to carry the tag is wrapped so it reads back verbatim
    if isinstance(value, str) and value.startswith(JSON_PREFIX):
        return _to_json(value)
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, str) and value.startswith(JSON_PREFIX):
        try:
            return json.loads(value[len(JSON_PREFIX):])
        except ValueError:
            return value
    return value


def _decode_doc(props: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not props:
        return {}
    return {k: _decode(v) for k, v in props.items()}


def insert_doc(label: str, doc: Dict[str, Any]) -> str:
    """Create a node and return its id.

    ``None`` values are not stored. ``created_at`` (epoch ms) is stamped when absent.
    """
    doc_id = doc.get("id") or new_id()
    props = {_field(k): _encode(v) for k, v in doc.items() if v is not None}
    props["id"] = doc_id
    props.setdefault("created_at", int(time.time() * 1000))
    run_cypher(f"CREATE (n:{_label(label)}) SET n = $props RETURN n.id AS id", {"props": props})
    return doc_id


def get_doc(label: str, doc_id: str) -> Dict[str, Any]:
    """Fetch a node's properties by id. Returns empty dict if not found."""
    if not doc_id:
        return {}
    res = run_cypher(f"MATCH (n:{_label(label)} {{id: $id}}) RETURN properties(n) AS doc", {"id": doc_id})
    return _decode_doc(res[0]["doc"]) if res else {}


def patch_doc(label: str, doc_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``patch`` into a node. Keys with ``None`` values are removed.

    Returns the updated document, or an empty dict if the node does not exist.
    """
    sets = {_field(k): _encode(v) for k, v in patch.items() if v is not None and k != "id"}
    removes = [_field(k) for k, v in patch.items() if v is None and k != "id"]
    query = f"MATCH (n:{_label(label)} {{id: $id}}) SET n += $props "
    for key in removes:
        query += f"REMOVE n.{key} "
    query += "RETURN properties(n) AS doc"
    res = run_cypher(query, {"id": doc_id, "props": sets})
    return _decode_doc(res[0]["doc"]) if res else {}


def delete_doc(label: str, doc_id: str) -> bool:
    res = run_cypher(
        f"MATCH (n:{_label(label)} {{id: $id}}) DETACH DELETE n RETURN count(*) AS deleted",
        {"id": doc_id},
    )
    return bool(res and res[0].get("deleted"))


def find_docs(
    label: str,
    filters: Optional[Dict[str, Any]] = None,
    *,
    order_by: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Return nodes of ``label`` matching all ``filters``, oldest first by default."""
    clauses: List[str] = []
    params: Dict[str, Any] = {}
    for i, (key, value) in enumerate((filters or {}).items()):
        pname = f"p{i}"
        if key.endswith("__in"):
            clauses.append(f"n.{_field(key[:-4])} IN ${pname}")
            params[pname] = list(value)
        elif key.endswith("__contains"):
            clauses.append(f"${pname} IN coalesce(n.{_field(key[:-10])}, [])")
            params[pname] = value
        elif value is None:
            clauses.append(f"n.{_field(key)} IS NULL")
        else:
            clauses.append(f"n.{_field(key)} = ${pname}")
            params[pname] = _encode(value)
    query = f"MATCH (n:{_label(label)}) "
    if clauses:
        query += "WHERE " + " AND ".join(clauses) + " "
    query += "RETURN properties(n) AS doc "
    # insertion order unless asked otherwise
    query += f"ORDER BY n.{_field(order_by or 'created_at')}, n.id "
    if limit is not None:
        query += "LIMIT $limit"
        params["limit"] = int(limit)
    return [_decode_doc(r["doc"]) for r in run_cypher(query, params)]
