import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from typing import Optional

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.services.image_service import backfill_camp_images, generate_camp_image, list_camps_without_images
from pdxcamps.services.llm_client import get_llm_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/images", tags=["images"])


def _run_backfill(limit: int, delay_ms: int, store) -> None:
    try:
        summary = backfill_camp_images(limit, delay_ms, llm=get_llm_client(), store=store)
        logger.info("Image backfill finished: %d completed, %d failed", summary["completed"], summary["failed"])
    except Exception as exc:
        logger.error("Image backfill failed: %s", exc)


@router.get("/camps-without-images")
def api_camps_without_images(limit: int = Query(100, ge=1, le=1000), store=Depends(get_store)):
    try:
        return list_camps_without_images(limit, store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to list camps")


@router.post("/camps/{camp_id}/generate")
def api_generate_camp_image(camp_id: str, custom_prompt: Optional[str] = None, store=Depends(get_store)):
    """Generate and store one camp image synchronously."""
    try:
        return generate_camp_image(camp_id, custom_prompt, get_llm_client(), store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to generate image")


@router.post("/backfill", status_code=202)
def api_backfill_images(
    background_tasks: BackgroundTasks,
    limit: int = Query(10, ge=1, le=100),
    delay_ms: int = Query(2000, ge=0),
    store=Depends(get_store),
):
    """Queue image generation for camps that have none; stops early when credits run out."""
    background_tasks.add_task(_run_backfill, limit, delay_ms, store)
    return {"scheduled": True, "limit": limit, "delay_ms": delay_ms}
