from pydantic import BaseModel, Field
from typing import Optional, List


class ReassignRequest(BaseModel):
    from_id: str = Field(..., description="Organization giving up its records")
    to_id: str = Field(..., description="Organization receiving them")
    source_id: Optional[str] = Field(None, description="Only move sessions from this scrape source")
    dry_run: bool = True


class CategoryUpdate(BaseModel):
    camp_id: str
    categories: List[str]


class CategoryUpdates(BaseModel):
    updates: List[CategoryUpdate]
