"""Lightweight web search + page fetch for source discovery.

- Search provider: DuckDuckGo HTML (no API key)
- HTTP client: httpx (with short timeouts)
- Extraction: BeautifulSoup

Search results are ``{"title", "url", "snippet"}`` dicts. Network failures
yield empty results instead of raising; discovery is best-effort.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_DDG_SEARCH_URL = "https://duckduckgo.com/html/"


def _unwrap_ddg_link(href: str) -> str:
    """DuckDuckGo wraps hits as ``//duckduckgo.com/l/?uddg=<target>``."""
    parsed = urlparse(href)
    if parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query).get("uddg")
        if target:
            return target[0]
    return href


@dataclass
class WebSearch:
    timeout: float = 8.0
    user_agent: str = "PDXCamps-Discovery/0.1"
    max_content_chars: int = 6000
    transport: Optional[httpx.BaseTransport] = None

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent, "Accept-Language": "en-US,en;q=0.9"},
            follow_redirects=True,
            transport=self.transport,
        )

    def search(self, query: str, k: int = 20) -> List[Dict[str, Optional[str]]]:
        out: List[Dict[str, Optional[str]]] = []
        with self._client() as client:
            try:
                r = client.get(_DDG_SEARCH_URL, params={"q": query})
                r.raise_for_status()
            except httpx.HTTPError as exc:
                logger.warning("Search failed for %r: %s", query, exc)
                return out
            soup = BeautifulSoup(r.text, "html.parser")
            for a in soup.select("a.result__a"):
                href = a.get("href")
                if not href:
                    continue
                snippet = None
                body = a.find_parent("div", class_="result__body")
                if body:
                    sn = body.select_one("a.result__snippet") or body.select_one("div.result__snippet")
                    if sn:
                        snippet = sn.get_text(" ", strip=True)
                out.append({"title": a.get_text(strip=True) or None, "url": _unwrap_ddg_link(href), "snippet": snippet})
                if len(out) >= k:
                    break
        return out

    @staticmethod
    def extract_text(html: str) -> str:
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        title = soup.title.get_text(strip=True) if soup.title else ""
        text = soup.get_text(" ", strip=True)
        return re.sub(r"\s+", " ", f"{title}\n\n{text}").strip()

    def fetch_content(self, url: str) -> Optional[str]:
        try:
            with self._client() as client:
                r = client.get(url)
                r.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Fetch failed for %s: %s", url, exc)
            return None
        text = self.extract_text(r.text)
        if not text:
            return None
        return text[: self.max_content_chars]
