from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from selectolax.parser import HTMLParser

from pdxcamps.services.validation_service import parse_age_range
from ..base import ScrapedSessionRecord, Spider, now_iso

logger = logging.getLogger(__name__)

EVENT_TYPES = {"Event", "EducationEvent", "ChildrensEvent", "SportsEvent", "CourseInstance"}


def _types(obj: Dict[str, Any]) -> set:
    t = obj.get("@type")
    if isinstance(t, list):
        return {str(x) for x in t}
    return {str(t)} if t else set()


def _walk(data: Any) -> Iterable[Dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _walk(item)
    elif isinstance(data, dict):
        yield data
        if "@graph" in data:
            yield from _walk(data["@graph"])


def _split_datetime(value: Optional[str]):
    """'2025-06-10T09:00:00-07:00' -> ('2025-06-10', 9, 0). Date-only values have no time."""
    if not value:
        return None, None, None
    s = str(value).strip()
    day = s[:10]
    if "T" in s and len(s) >= 16:
        try:
            return day, int(s[11:13]), int(s[14:16])
        except ValueError:
            return day, None, None
    return day, None, None


def _location_text(loc: Any) -> Optional[str]:
    if isinstance(loc, list):
        loc = loc[0] if loc else None
    if isinstance(loc, str):
        return loc.strip() or None
    if not isinstance(loc, dict):
        return None
    parts = [loc.get("name")]
    addr = loc.get("address")
    if isinstance(addr, str):
        parts.append(addr)
    elif isinstance(addr, dict):
        parts.append(addr.get("streetAddress"))
        parts.append(addr.get("addressLocality"))
        region = addr.get("addressRegion")
        postal = addr.get("postalCode")
        parts.append(" ".join(p for p in (region, postal) if p) or None)
    text = ", ".join(str(p).strip() for p in parts if p)
    return text or None


def _price_cents(offers: Any) -> Optional[int]:
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    if not isinstance(offers, dict):
        return None
    price = offers.get("price")
    if price is None:
        price = offers.get("lowPrice")
    if price is None or price == "":
        return None
    try:
        return int(round(float(str(price).replace(",", "")) * 100))
    except ValueError:
        return None


class JsonLdEventSpider(Spider):
    """Reads schema.org Event blocks (``<script type="application/ld+json">``).

    Many booking platforms publish sessions this way, which avoids per-site selectors.
    """

    name = "jsonld_events"

    def parse_html(self, *, html: str, source_url: str) -> List[Dict[str, Any]]:
        doc = HTMLParser(html)
        fetched = now_iso()
        records: List[ScrapedSessionRecord] = []
        for script in doc.css('script[type="application/ld+json"]') or []:
            raw = script.text(strip=True)
            if not raw:
                continue
            try:
                data = json.loads(raw)
            except ValueError:
                logger.warning("Skipping malformed JSON-LD block on %s", source_url)
                continue
            for obj in _walk(data):
                if not (_types(obj) & EVENT_TYPES):
                    continue
                rec = self._to_record(obj, source_url, fetched)
                if rec:
                    records.append(rec)
        return self.as_dicts(records)

    def _to_record(self, obj: Dict[str, Any], source_url: str, fetched: str) -> Optional[ScrapedSessionRecord]:
        name = (obj.get("name") or "").strip()
        if not name:
            return None
        start, drop_h, drop_m = _split_datetime(obj.get("startDate"))
        end, pick_h, pick_m = _split_datetime(obj.get("endDate"))
        rec = ScrapedSessionRecord(
            name=name,
            description=(obj.get("description") or "").strip() or None,
            location=_location_text(obj.get("location")),
            start_date=start,
            end_date=end or start,
            date_raw=" - ".join(str(v) for v in (obj.get("startDate"), obj.get("endDate")) if v) or None,
            drop_off_hour=drop_h,
            drop_off_minute=drop_m,
            pick_up_hour=pick_h,
            pick_up_minute=pick_m,
            registration_url=obj.get("url") or None,
            source_product_id=obj.get("@id") or obj.get("identifier") or None,
            meta=self.source_meta(source_url, fetched),
        )
        offers = obj.get("offers")
        rec.price_in_cents = _price_cents(offers)
        if isinstance(offers, dict) and offers.get("price") is not None:
            rec.price_raw = "Free" if rec.price_in_cents == 0 else f"${offers['price']}"
        age_text = obj.get("typicalAgeRange")
        if age_text:
            rec.age_grade_raw = str(age_text)
            parsed = parse_age_range(f"Ages {age_text}") or {}
            rec.min_age = parsed.get("min_age")
            rec.max_age = parsed.get("max_age")
        image = obj.get("image")
        if isinstance(image, str):
            rec.image_urls = [image]
        elif isinstance(image, list):
            rec.image_urls = [i for i in image if isinstance(i, str)]
        availability = str((offers or {}).get("availability") or "") if isinstance(offers, dict) else ""
        if availability:
            rec.is_available = "SoldOut" not in availability
        return rec
