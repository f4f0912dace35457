from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import httpx

logger = logging.getLogger(__name__)


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def sha256_hexdigest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


@dataclass
class SourceMeta:
    source_site: str
    source_url: Optional[str]
    fetched_at: str  # ISO8601
    parser: str
    content_hash: Optional[str] = None


@dataclass
class ScrapedSessionRecord:
    """One session as read off a provider page, before import.

    Raw text fields (``*_raw``) keep what the page said when a value could not be parsed.
    """

    name: str
    meta: SourceMeta
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    date_raw: Optional[str] = None
    time_raw: Optional[str] = None
    drop_off_hour: Optional[int] = None
    drop_off_minute: Optional[int] = None
    pick_up_hour: Optional[int] = None
    pick_up_minute: Optional[int] = None
    price_in_cents: Optional[int] = None
    price_raw: Optional[str] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    min_grade: Optional[int] = None
    max_grade: Optional[int] = None
    age_grade_raw: Optional[str] = None
    registration_url: Optional[str] = None
    source_product_id: Optional[str] = None
    image_urls: List[str] = field(default_factory=list)
    is_available: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        # Flatten meta for easier downstream processing
        meta = d.pop("meta", {})
        for k, v in (meta or {}).items():
            d[f"meta_{k}"] = v
        return d


def strip_meta(record: Dict[str, Any]) -> Dict[str, Any]:
    """Drop flattened ``meta_*`` keys, leaving the scraped-session fields."""
    return {k: v for k, v in record.items() if not k.startswith("meta_")}


class Spider:
    """Turns one provider page into scraped-session dicts.

    Subclasses implement ``parse_html``. ``fetch`` downloads the page with
    httpx and hands the HTML over; a failed download yields no sessions.
    """

    name: str = "base"

    def __init__(
        self,
        *,
        source_site: str = "camp_site",
        timeout: float = 15.0,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.source_site = source_site
        self.timeout = float(timeout)
        self.headers = headers or {"User-Agent": "PDXCamps-Crawler/0.1"}

    def parse_html(self, *, html: str, source_url: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def fetch(self, url: str) -> List[Dict[str, Any]]:
        html = self.get_page(url)
        if not html:
            return []
        return self.parse_html(html=html, source_url=url)

    def get_page(self, url: str) -> str:
        try:
            with httpx.Client(timeout=self.timeout, headers=self.headers, follow_redirects=True) as client:
                r = client.get(url)
                r.raise_for_status()
                return r.text
        except httpx.HTTPError as exc:
            logger.warning("Fetch failed for %s: %s", url, exc)
            return ""

    def source_meta(self, source_url: str, fetched_at: str) -> SourceMeta:
        return SourceMeta(
            source_site=self.source_site,
            source_url=source_url,
            fetched_at=fetched_at,
            parser=self.name,
        )

    @staticmethod
    def as_dicts(records: Iterable[ScrapedSessionRecord]) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in records]
