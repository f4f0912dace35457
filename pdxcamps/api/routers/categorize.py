import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from typing import Optional

from pdxcamps.api.deps import get_store, http_error
from pdxcamps.services.categorize_service import categorize_batch, run_categorization
from pdxcamps.services.llm_client import get_llm_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categorize", tags=["categorize"])


def _run_loop(batch_size: int, delay_ms: int, max_batches: Optional[int], store) -> None:
    try:
        summary = run_categorization(batch_size, delay_ms, max_batches, llm=get_llm_client(), store=store)
        logger.info("Categorization finished: %s", summary)
    except Exception as exc:
        logger.error("Categorization loop failed: %s", exc)


@router.post("/batch")
def api_categorize_batch(batch_size: int = Query(50, ge=1, le=200), store=Depends(get_store)):
    """Categorize one batch synchronously."""
    try:
        return categorize_batch(batch_size, get_llm_client(), store=store)
    except Exception as exc:
        raise http_error(exc, "Failed to categorize batch")


@router.post("/run", status_code=202)
def api_categorize_all(
    background_tasks: BackgroundTasks,
    batch_size: int = Query(50, ge=1, le=200),
    delay_ms: int = Query(1000, ge=0),
    max_batches: Optional[int] = Query(None, ge=1),
    store=Depends(get_store),
):
    """Start the batch loop in the background; it keeps going until a batch asks for no follow-up."""
    background_tasks.add_task(_run_loop, batch_size, delay_ms, max_batches, store)
    return {"scheduled": True, "batch_size": batch_size, "delay_ms": delay_ms}
