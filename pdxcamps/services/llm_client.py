"""Chat-completion and image access for categorization, source analysis and camp images.

Any OpenAI-compatible endpoint works. Settings come from the environment:

- LLM_API_KEY / OPENAI_API_KEY
- LLM_BASE_URL (optional gateway)
- LLM_MODEL (default: gpt-4o-mini)
- LLM_TIMEOUT (seconds, default 60)
- IMAGE_MODEL (default: dall-e-3), used for camp images

Both callers ask for JSON and then pull the first array or object out of the
reply with ``extract_json``, since models wrap answers in fences or prose.
"""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

try:
    from openai import OpenAI
except Exception as _exc:  # pragma: no cover - import checked at runtime
    OpenAI = None
    _openai_import_error = _exc

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_IMAGE_MODEL = "dall-e-3"

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\n|\n?```$")
_SPANS = {"[": re.compile(r"\[[\s\S]*\]"), "{": re.compile(r"\{[\s\S]*\}")}


@dataclass
class LLMSettings:
    api_key: Optional[str]
    base_url: Optional[str]
    model: str
    timeout: float
    image_model: str = DEFAULT_IMAGE_MODEL

    @classmethod
    def from_env(cls) -> "LLMSettings":
        return cls(
            api_key=os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY"),
            base_url=os.getenv("LLM_BASE_URL") or None,
            model=os.getenv("LLM_MODEL") or DEFAULT_MODEL,
            timeout=float(os.getenv("LLM_TIMEOUT") or 60),
            image_model=os.getenv("IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
        )


def extract_json(text: str, opener: str = "{") -> Any:
    """Return the outermost JSON array (``opener="["``) or object found in ``text``.

    Raises ValueError when no span of that kind parses.
    """
    s = _FENCE_RE.sub("", (text or "").strip()).strip()
    m = _SPANS[opener].search(s)
    if not m:
        raise ValueError(f"No JSON {'array' if opener == '[' else 'object'} found")
    return json.loads(m.group(0))


class LLMClient:
    def __init__(self, settings: Optional[LLMSettings] = None) -> None:
        if OpenAI is None:  # pragma: no cover
            raise RuntimeError(
                "The 'openai' package is not installed. Install the project with: pip install -e .\n"
                f"Import error: {_openai_import_error!r}"
            )
        self.settings = settings or LLMSettings.from_env()
        if not self.settings.api_key:
            raise RuntimeError("Missing LLM API key. Set LLM_API_KEY or OPENAI_API_KEY.")
        kwargs: Dict[str, Any] = {"api_key": self.settings.api_key, "timeout": self.settings.timeout}
        if self.settings.base_url:
            kwargs["base_url"] = self.settings.base_url
        self._client = OpenAI(**kwargs)

    @property
    def model(self) -> str:
        return self.settings.model

    def generate(
        self,
        messages: List[Dict[str, Any]],
        *,
        temperature: float = 0.2,
        max_tokens: int = 2000,
        extra_body: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
    ) -> Tuple[str, Dict[str, Any], str]:
        """Run one chat completion and return (text, usage, model)."""
        request: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": float(temperature),
            "max_tokens": int(max_tokens),
        }
        if extra_body:
            request["extra_body"] = extra_body
        resp = self._client.chat.completions.create(**request)
        choice = resp.choices[0] if resp.choices else None
        text = ((choice.message.content if choice else "") or "").strip()
        usage = resp.usage.model_dump() if getattr(resp, "usage", None) is not None else {}
        used_model = getattr(resp, "model", None) or request["model"]
        logger.debug("LLM %s used %s token(s)", used_model, usage.get("total_tokens"))
        return text, usage, used_model

    def generate_image(self, prompt: str, *, size: str = "1792x1024", model: Optional[str] = None) -> str:
        """Generate one image and return its (temporary) URL."""
        resp = self._client.images.generate(
            model=model or self.settings.image_model,
            prompt=prompt,
            size=size,
            n=1,
            response_format="url",
        )
        url = resp.data[0].url if resp.data else None
        if not url:
            raise RuntimeError("Image API returned no image")
        logger.debug("Image generated with %s", model or self.settings.image_model)
        return url


_client_cache: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    global _client_cache
    if _client_cache is None:
        _client_cache = LLMClient()
    return _client_cache
