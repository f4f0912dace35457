"""JSONL hand-off between ``scrape`` and ``import``/``validate``."""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Tuple

from .base import canonical_json, sha256_hexdigest, strip_meta

logger = logging.getLogger(__name__)


def session_key(rec: Dict) -> Tuple[str, str]:
    """(source site, hash of the session fields). Fetch metadata is not hashed.

    The hash is stored back on the record as ``meta_content_hash``.
    """
    digest = rec.get("meta_content_hash")
    if not digest:
        digest = sha256_hexdigest(canonical_json(strip_meta(rec)))
        rec["meta_content_hash"] = digest
    return str(rec.get("meta_source_site") or ""), digest


def write_jsonl(records: Iterable[Dict], out_dir: str, filename_prefix: str) -> str:
    """Write one timestamped ``<prefix>-<UTC>.jsonl`` file and return its path.

    Repeats of the same session from the same site are written once.
    """
    os.makedirs(out_dir, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    path = os.path.join(out_dir, f"{filename_prefix}-{stamp}.jsonl")

    seen = set()
    skipped = 0
    with open(path, "a", encoding="utf-8") as out:
        for rec in records:
            key = session_key(rec)
            if key in seen:
                skipped += 1
                continue
            seen.add(key)
            out.write(json.dumps(rec, ensure_ascii=False) + "\n")
    logger.info("Wrote %d session(s) to %s (%d repeat(s) skipped)", len(seen), path, skipped)
    return path


def read_jsonl(path: str) -> List[Dict]:
    """Load the records of a JSONL file. Blank and malformed lines are skipped."""
    rows: List[Dict] = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                rec = json.loads(line)
            except ValueError:
                logger.warning("%s:%d is not valid JSON, skipped", path, lineno)
                continue
            if isinstance(rec, dict):
                rows.append(rec)
    return rows
