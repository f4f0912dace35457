"""AI-generated photos for camps that have no images.

The LLM writes a photo prompt from the camp's name, description and ages, with
a photography style picked deterministically from the camp id so regenerating
keeps the same look. The image model renders it and the URL goes into the
camp's ``image_urls``.

Backfill runs one camp at a time with a pause between calls and stops early
when the image provider reports exhausted credits.
"""
import hashlib
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.errors import NotFoundError
from pdxcamps.services.llm_client import get_llm_client

logger = logging.getLogger(__name__)

CREDITS_EXHAUSTED = "IMAGE_CREDITS_EXHAUSTED"
PROMPT_SUFFIX = "Photorealistic, high resolution photograph. No text, words, logos, or watermarks."

PHOTO_STYLES = (
    "candid documentary photography, 85mm f/1.4",
    "lifestyle editorial photography, 35mm f/1.8",
    "vibrant photojournalism style, 24-70mm f/2.8",
    "warm family photography style, 56mm f/1.2",
    "bright commercial photography for a summer catalog",
    "sports action photography, 70-200mm f/2.8, high shutter speed",
)
COMPOSITIONS = (
    "low angle looking up at the action, kids filling the frame",
    "eye-level with the children, intimate perspective",
    "wide establishing shot showing the full environment and activity",
    "close-up on hands working, shallow depth of field",
    "candid profile shot from the side, capturing concentration",
)
LIGHTING = (
    "golden hour morning light, warm tones, long soft shadows",
    "bright midday Oregon summer sun, vivid colors",
    "overcast Pacific Northwest sky, diffused light, rich colors",
    "open shade under trees, even soft light on faces",
    "indoor with large windows, natural light flooding in",
)
SETTINGS = (
    "at a Portland park with Douglas fir trees in the background",
    "in a bright modern classroom or maker space",
    "on a grassy sports field with a treeline behind",
    "along a forest trail in the Pacific Northwest",
    "in an art studio with paint-splattered tables",
)


def _stable_hash(text: str) -> int:
    return int(hashlib.md5(text.encode("utf-8")).hexdigest()[:8], 16)


def style_prompt(camp_id: str) -> str:
    """Photography direction for a camp; the same id always gets the same style."""
    h = _stable_hash(camp_id)
    parts = [
        PHOTO_STYLES[h % len(PHOTO_STYLES)],
        COMPOSITIONS[(h + 1) % len(COMPOSITIONS)],
        LIGHTING[(h + 2) % len(LIGHTING)],
        SETTINGS[(h + 3) % len(SETTINGS)],
    ]
    return ". ".join(parts) + "."


def age_description(requirements: Optional[Dict[str, Any]]) -> str:
    req = requirements or {}
    min_age = req.get("min_age")
    max_age = req.get("max_age")
    # grade + 5 ~ age
    if min_age is None and req.get("min_grade") is not None:
        min_age = req["min_grade"] + 5
    if max_age is None and req.get("max_grade") is not None:
        max_age = req["max_grade"] + 6
    if min_age is None and max_age is None:
        return "children ages 6-12"
    if max_age and max_age <= 5:
        return "toddlers and preschoolers (ages 3-5)"
    if min_age and min_age >= 13:
        return "teenagers (ages 13-17)"
    if min_age and min_age >= 10:
        return "older kids and tweens (ages 10-13)"
    if max_age and max_age <= 8:
        return "young children (ages 5-8)"
    return f"children ages {min_age or 5}-{max_age or 12}"


def build_prompt_request(camp: Dict[str, Any], organization_name: Optional[str] = None) -> str:
    return (
        "You write prompts for photorealistic image generation. Write a prompt for a PHOTOGRAPH "
        "(not an illustration) of this summer camp:\n\n"
        f"Camp Name: {camp.get('name')}\n"
        f"Organization: {organization_name or 'Unknown'}\n"
        f"Description: {camp.get('description') or ''}\n"
        f"Age Group: {age_description(camp.get('age_requirements'))}\n\n"
        "Rules:\n"
        "1. Describe a real photograph of the specific activity, never a painting, cartoon or render\n"
        "2. Focus on one vivid, specific moment of the activity\n"
        "3. Include concrete details: materials, equipment, colors, what the kids are wearing\n"
        "4. Show kids of the right age doing the activity without over-specifying demographics\n\n"
        f"Photography direction: {style_prompt(camp.get('id') or '')}\n\n"
        f'Respond with ONLY the prompt, 2-4 sentences. End with "{PROMPT_SUFFIX}"'
    )


def generate_image_prompt(camp: Dict[str, Any], organization_name: Optional[str] = None, llm=None) -> str:
    client = llm or get_llm_client()
    text, _usage, _model = client.generate(
        [{"role": "user", "content": build_prompt_request(camp, organization_name)}],
        temperature=0.7,
        max_tokens=500,
    )
    if text:
        return text
    return f"Children at {camp.get('name')} summer camp, candid photograph. {style_prompt(camp.get('id') or '')} {PROMPT_SUFFIX}"


def _needs_image(camp: Dict[str, Any]) -> bool:
    return camp.get("is_active", True) and not camp.get("image_urls") and not camp.get("image_storage_ids")


def camps_needing_images(limit: Optional[int] = None, *, store=graph_store) -> Dict[str, Any]:
    camps = [c for c in store.find_docs("Camp", order_by="name") if _needs_image(c)]
    return {"total": len(camps), "camps": camps[:limit] if limit is not None else camps}


def list_camps_without_images(limit: int = 100, *, store=graph_store) -> Dict[str, Any]:
    found = camps_needing_images(limit, store=store)
    return {
        "count": found["total"],
        "camps": [
            {
                "id": c["id"],
                "name": c.get("name"),
                "categories": c.get("categories") or [],
                "description": (c.get("description") or "")[:200],
            }
            for c in found["camps"]
        ],
    }


def _is_credit_error(exc: Exception) -> bool:
    return getattr(exc, "status_code", None) in (402, 403) or "insufficient_quota" in str(exc)


def generate_camp_image(camp_id: str, custom_prompt: Optional[str] = None, llm=None, *, store=graph_store) -> Dict[str, Any]:
    """Write a prompt (unless one is given), render it, and store the URL on the camp.

    Provider failures are returned as ``{"success": False, "error": ...}``.
    """
    camp = store.get_doc("Camp", camp_id)
    if not camp:
        raise NotFoundError("Camp not found")
    client = llm or get_llm_client()
    try:
        org_name = store.get_doc("Organization", camp.get("organization_id")).get("name")
        prompt = custom_prompt or generate_image_prompt(camp, org_name, client)
        url = client.generate_image(prompt)
    except Exception as exc:
        if _is_credit_error(exc):
            logger.error("Image credits exhausted while generating for %s: %s", camp.get("name"), exc)
            return {"success": False, "camp_id": camp_id, "image_url": None, "error": CREDITS_EXHAUSTED}
        logger.warning("Image generation failed for %s: %s", camp.get("name"), exc)
        return {"success": False, "camp_id": camp_id, "image_url": None, "error": str(exc)}
    store.patch_doc("Camp", camp_id, {"image_urls": [url]})
    logger.info("Stored generated image for %s", camp.get("name"))
    return {"success": True, "camp_id": camp_id, "image_url": url, "prompt": prompt}


def backfill_camp_images(
    limit: int = 10,
    delay_ms: int = 2000,
    *,
    llm=None,
    store=graph_store,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """Generate images for up to ``limit`` camps without one, pausing between camps."""
    queued = [c["id"] for c in camps_needing_images(limit, store=store)["camps"]]
    results: List[Dict[str, Any]] = []
    completed = 0
    failed = 0
    stopped_early = False
    for i, camp_id in enumerate(queued):
        if i:
            sleep(delay_ms / 1000.0)
        camp = store.get_doc("Camp", camp_id)
        if not camp or not _needs_image(camp):
            continue
        res = generate_camp_image(camp_id, llm=llm, store=store)
        results.append({"camp_id": camp_id, "camp_name": camp.get("name"), "success": res["success"], "error": res.get("error")})
        if res["success"]:
            completed += 1
            continue
        failed += 1
        if res["error"] == CREDITS_EXHAUSTED:
            stopped_early = True
            logger.warning("Backfill stopped: %d completed, %d failed, %d skipped", completed, failed, len(queued) - i - 1)
            break
    return {
        "camps_queued": len(queued),
        "completed": completed,
        "failed": failed,
        "stopped_early": stopped_early,
        "results": results,
    }
