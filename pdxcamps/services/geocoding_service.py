"""Forward geocoding through the OpenCage JSON API.

Configuration:

- OPENCAGE_API_KEY (without it every lookup returns None)

Usage:
    from pdxcamps.services.geocoding_service import get_geocoder
    hit = get_geocoder().geocode_query("1945 SE Water Ave, Portland, OR")
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

_OPENCAGE_URL = "https://api.opencagedata.com/geocode/v1/json"


@dataclass
class Geocoder:
    api_key: Optional[str] = field(default_factory=lambda: os.getenv("OPENCAGE_API_KEY"))
    timeout: float = 10.0
    transport: Optional[httpx.BaseTransport] = None

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            headers={"User-Agent": "pdx-camps/0.1"},
            transport=self.transport,
        )

    def geocode_query(self, query: str, near_city: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Geocode a free-form address or place name.

        ``near_city`` is appended when the query does not already mention it.
        Returns None when no key is configured, the request fails, or nothing matches.
        """
        if not self.api_key:
            logger.warning("OPENCAGE_API_KEY not set, skipping geocoding")
            return None
        q = (query or "").strip()
        if not q:
            return None
        if near_city and near_city.lower() not in q.lower():
            q = f"{q}, {near_city}"

        params = {"q": q, "key": self.api_key, "countrycode": "us", "limit": 1}
        try:
            with self._client() as client:
                resp = client.get(_OPENCAGE_URL, params=params)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Geocoding failed for %r: %s", q, exc)
            return None

        results = data.get("results") or []
        if not results:
            return None
        top = results[0]
        comp = top.get("components") or {}
        house = comp.get("house_number") or ""
        road = comp.get("road") or comp.get("street") or ""
        street = f"{house} {road}" if house and road else road
        return {
            "latitude": top["geometry"]["lat"],
            "longitude": top["geometry"]["lng"],
            "formatted_address": top.get("formatted"),
            "street": street or None,
            "city": comp.get("city") or comp.get("town") or comp.get("village") or comp.get("suburb"),
            "state": comp.get("state_code") or comp.get("state"),
            "zip": comp.get("postcode"),
        }

    def geocode_address(self, street: str, city: str, state: str, zip_code: str) -> Optional[Dict[str, Any]]:
        return self.geocode_query(f"{street}, {city}, {state} {zip_code}, USA")


_geocoder_cache: Optional[Geocoder] = None


def get_geocoder() -> Geocoder:
    global _geocoder_cache
    if _geocoder_cache is None:
        _geocoder_cache = Geocoder()
    return _geocoder_cache
