"""AI-assisted camp categorization.

Camps without a specific category are sent to the LLM in batches. Each batch
reports whether another one should follow; ``run_categorization`` keeps going
until a batch says no.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from pdxcamps.services import graph as graph_store
from pdxcamps.services.cleanup.categories import (
    VALID_CATEGORIES,
    apply_camp_categories,
    get_uncategorized_camps_batch,
)
from pdxcamps.services.llm_client import extract_json, get_llm_client

logger = logging.getLogger(__name__)

FALLBACK_CATEGORIES = ["Sports", "Arts", "Nature"]

_RULES = """Rules:
- Each camp MUST have 1-3 categories (pick the most relevant)
- NEVER return "General" as the only category. Always pick at least one specific category.
- For umbrella/multi-activity camps, assign 2-3 categories the organization most likely offers based on its name and description.
- Community centers, parks & rec and JCC camps typically offer: Sports, Arts, Nature
- Use "Nature" for outdoor, wilderness, animal, farm and forest camps
- Use "Adventure" for kayaking, climbing, parkour, expeditions, survival skills
- Use "Sports" for specific sports and general athletic camps
- Use "Arts" for visual arts, crafts, pottery, woodworking, painting
- Use "STEM" for science, technology, coding, robotics, engineering, math
- Use "Drama" for theater, acting, improv, film, animation
- Use "Music" for music, instruments, singing, band
- Use "Academic" for reading, writing, languages, tutoring
- Use "Cooking" for culinary, baking, food
- Use "Dance" for dance styles"""


def build_prompt(camps: List[Dict[str, Any]]) -> str:
    camp_list = "\n\n".join(
        f'{i}. Name: "{c["name"]}"\n   Org: "{c["org_name"]}"\n   Description: "{c["description"]}"'
        for i, c in enumerate(camps, start=1)
    )
    return (
        "Categorize each summer camp below into one or more of these categories:\n"
        f"{', '.join(VALID_CATEGORIES)}\n\n{_RULES}\n\n"
        "Respond with ONLY a JSON array of objects, one per camp, in order:\n"
        '[{"i": 1, "cats": ["Nature", "Adventure"]}, {"i": 2, "cats": ["Sports"]}, ...]\n\n'
        f"Camps to categorize:\n\n{camp_list}"
    )


def parse_classifications(text: str) -> List[Dict[str, Any]]:
    """Parse the first JSON array in the model output. Raises ValueError when there is none."""
    data = extract_json(text, "[")
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array")
    return [row for row in data if isinstance(row, dict)]


def categorize_batch(batch_size: int = 50, llm=None, *, store=graph_store) -> Dict[str, Any]:
    pending = get_uncategorized_camps_batch(batch_size, store=store)
    total = pending["total_remaining"]
    batch = pending["camps"]
    if not batch:
        logger.info("All done, no more uncategorized camps")
        return {"total_remaining": 0, "batch_processed": 0, "batch_updated": 0, "rescheduled": False}

    logger.info("Categorizing batch of %d / %d remaining", len(batch), total)
    client = llm or get_llm_client()
    text, _usage, _model = client.generate(
        [{"role": "user", "content": build_prompt(batch)}],
        temperature=0.0,
        max_tokens=4096,
    )

    try:
        classifications = parse_classifications(text)
    except ValueError:
        logger.error("Failed to parse AI response, skipping batch: %s", (text or "")[:300])
        return {
            "total_remaining": total,
            "batch_processed": len(batch),
            "batch_updated": 0,
            "error": "parse_failed",
            "rescheduled": total > batch_size,
        }

    updates: List[Dict[str, Any]] = []
    defaulted = 0
    for cls in classifications:
        try:
            idx = int(cls.get("i")) - 1
        except (TypeError, ValueError):
            continue
        if idx < 0 or idx >= len(batch):
            continue
        cats = [c for c in (cls.get("cats") or []) if c in VALID_CATEGORIES]
        if not cats:
            cats = list(FALLBACK_CATEGORIES)
            defaulted += 1
        updates.append({"camp_id": batch[idx]["camp_id"], "categories": cats})
    if defaulted:
        logger.info("%d/%d camps defaulted to multi-activity", defaulted, len(updates))

    batch_updated = 0
    if updates:
        applied = apply_camp_categories(updates, store=store)
        batch_updated = applied["updated_camps"]
        logger.info("Batch done: %d camps, %d sessions updated", applied["updated_camps"], applied["updated_sessions"])

    remaining = total - len(batch)
    if remaining > 0 and batch_updated == 0:
        logger.warning("Stopping: batch updated 0 camps with %d remaining", remaining)
    return {
        "total_remaining": remaining,
        "batch_processed": len(batch),
        "batch_updated": batch_updated,
        "rescheduled": remaining > 0 and batch_updated > 0,
    }


def run_categorization(
    batch_size: int = 50,
    delay_ms: int = 1000,
    max_batches: Optional[int] = None,
    max_parse_failures: int = 3,
    *,
    llm=None,
    store=graph_store,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """Run batches back to back until one does not ask for a follow-up.

    Gives up after ``max_parse_failures`` unparseable model responses.
    """
    batches = 0
    processed = 0
    updated = 0
    parse_failures = 0
    last: Dict[str, Any] = {"total_remaining": 0}
    while max_batches is None or batches < max_batches:
        if batches:
            sleep(delay_ms / 1000.0)
        last = categorize_batch(batch_size, llm=llm, store=store)
        batches += 1
        processed += last["batch_processed"]
        updated += last["batch_updated"]
        if last.get("error") == "parse_failed":
            parse_failures += 1
            if parse_failures >= max_parse_failures:
                logger.warning("Giving up after %d unparseable responses", parse_failures)
                break
        if not last["rescheduled"]:
            break
    return {
        "batches": batches,
        "camps_processed": processed,
        "camps_updated": updated,
        "parse_failures": parse_failures,
        "total_remaining": last["total_remaining"],
    }
