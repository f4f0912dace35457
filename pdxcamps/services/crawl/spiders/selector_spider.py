from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from pdxcamps.services.validation_service import (
    parse_age_range,
    parse_date_range,
    parse_price,
    parse_time_range,
)
from ..base import ScrapedSessionRecord, Spider, now_iso

logger = logging.getLogger(__name__)

DEFAULT_SOLD_OUT_INDICATORS = ("sold out", "full", "waitlist only", "closed")


class SelectorSessionSpider(Spider):
    """Configurable HTML spider for camp session listings.

    Each session on the page lives in a container element; fields are read
    with CSS selectors relative to that container. The configuration mirrors
    the ``session_extraction`` block of a scrape source's scraper config:

        {
          "container_selector": ".session",
          "fields": {
            "name": {"selector": "h3"},
            "dates": {"selector": ".dates"},
            "time": {"selector": ".time"},
            "price": {"selector": ".price"},
            "age_range": {"selector": ".ages"},
            "location": {"selector": ".location"},
            "description": {"selector": ".desc"},
            "registration_url": {"selector": "a.register"},
            "status": {"selector": ".status", "sold_out_indicators": ["Sold out"]}
          }
        }

    Raw text is kept alongside every parsed value so validation can report
    what the page said when parsing failed.
    """

    name = "selector_sessions"

    def __init__(
        self,
        extraction: Dict[str, Any],
        *,
        source_site: str = "camp_site",
        category: Optional[str] = None,
        timeout: float = 15.0,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        if not extraction.get("container_selector"):
            raise ValueError("container_selector is required")
        if not (extraction.get("fields") or {}).get("name"):
            raise ValueError("fields.name is required")
        self.container_selector = extraction["container_selector"]
        self.fields: Dict[str, Dict[str, Any]] = extraction["fields"]
        super().__init__(source_site=source_site, timeout=timeout, headers=headers)
        self.category = category

    def parse_html(self, *, html: str, source_url: str) -> List[Dict[str, Any]]:
        doc = HTMLParser(html)
        fetched = now_iso()
        records: List[ScrapedSessionRecord] = []
        for node in doc.css(self.container_selector) or []:
            name = self._text(node, "name")
            if not name:
                continue
            rec = ScrapedSessionRecord(
                name=name,
                category=self.category,
                meta=self.source_meta(source_url, fetched),
            )
            self._fill_dates(rec, self._text(node, "dates"))
            self._fill_times(rec, self._text(node, "time"))
            self._fill_price(rec, self._text(node, "price"))
            self._fill_ages(rec, self._text(node, "age_range"))
            rec.location = self._text(node, "location")
            rec.description = self._text(node, "description")
            rec.registration_url = self._link(node, "registration_url", source_url)
            rec.image_urls = self._images(node, source_url)
            status_text = self._text(node, "status")
            if status_text is not None:
                indicators = self.fields["status"].get("sold_out_indicators") or DEFAULT_SOLD_OUT_INDICATORS
                rec.is_available = not any(ind.lower() in status_text.lower() for ind in indicators)
            records.append(rec)
        logger.info("Parsed %d session(s) from %s", len(records), source_url)
        return self.as_dicts(records)

    def _select(self, node: Node, field: str) -> Optional[Node]:
        field_cfg = self.fields.get(field)
        if not field_cfg or not field_cfg.get("selector"):
            return None
        return node.css_first(field_cfg["selector"])

    def _text(self, node: Node, field: str) -> Optional[str]:
        hit = self._select(node, field)
        if hit is None:
            return None
        text = " ".join((hit.text(separator=" ", strip=True) or "").split())
        return text or None

    def _link(self, node: Node, field: str, base_url: str) -> Optional[str]:
        hit = self._select(node, field)
        if hit is None:
            return None
        href = (hit.attributes.get("href") or "").strip()
        if not href:
            inner = hit.css_first("a[href]")
            href = (inner.attributes.get("href") or "").strip() if inner else ""
        return urljoin(base_url, href) if href else None

    def _images(self, node: Node, base_url: str) -> List[str]:
        field_cfg = self.fields.get("image")
        if not field_cfg or not field_cfg.get("selector"):
            return []
        urls = []
        for img in node.css(field_cfg["selector"]) or []:
            src = (img.attributes.get("src") or "").strip()
            if src:
                urls.append(urljoin(base_url, src))
        return urls

    @staticmethod
    def _fill_dates(rec: ScrapedSessionRecord, text: Optional[str]) -> None:
        rec.date_raw = text
        parsed = parse_date_range(text or "")
        if parsed:
            rec.start_date = parsed["start_date"]
            rec.end_date = parsed["end_date"]

    @staticmethod
    def _fill_times(rec: ScrapedSessionRecord, text: Optional[str]) -> None:
        rec.time_raw = text
        parsed = parse_time_range(text or "")
        if parsed:
            rec.drop_off_hour = parsed["drop_off_hour"]
            rec.drop_off_minute = parsed["drop_off_minute"]
            rec.pick_up_hour = parsed["pick_up_hour"]
            rec.pick_up_minute = parsed["pick_up_minute"]

    @staticmethod
    def _fill_price(rec: ScrapedSessionRecord, text: Optional[str]) -> None:
        rec.price_raw = text
        rec.price_in_cents = parse_price(text or "")

    @staticmethod
    def _fill_ages(rec: ScrapedSessionRecord, text: Optional[str]) -> None:
        rec.age_grade_raw = text
        parsed = parse_age_range(text or "") or {}
        rec.min_age = parsed.get("min_age")
        rec.max_age = parsed.get("max_age")
        rec.min_grade = parsed.get("min_grade")
        rec.max_grade = parsed.get("max_grade")
