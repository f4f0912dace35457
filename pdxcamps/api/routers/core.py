from fastapi import APIRouter, HTTPException

from pdxcamps.services.graph import clear_database, count_by_label, ensure_schema

router = APIRouter(tags=["core"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/admin/schema")
def api_ensure_schema():
    """Create the id constraints and foreign-key indexes (idempotent)."""
    try:
        return ensure_schema()
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to create schema: {exc}")


@router.get("/admin/counts")
def api_counts():
    try:
        return count_by_label()
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to count nodes: {exc}")


@router.post("/admin/clear-db")
def api_clear_db():
    try:
        return clear_database()
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to clear database: {exc}")
