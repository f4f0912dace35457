from pydantic import BaseModel, Field
from typing import Optional, List


class DiscoveredSourceCreate(BaseModel):
    city_id: str
    url: str
    title: str
    snippet: Optional[str] = None
    discovery_query: str = Field("", description="Search query that surfaced the URL")


class AnalyzeRequest(BaseModel):
    page_text: str = Field(..., description="Visible text of the page to classify")


class ReviewRequest(BaseModel):
    status: str = Field(..., description="approved or rejected")
    review_notes: Optional[str] = None


class DuplicateRequest(BaseModel):
    duplicate_of_id: str


class SearchRequest(BaseModel):
    city_id: str
    query: str = Field(..., description="e.g. 'summer camps portland oregon'")
    k: int = Field(20, ge=1, le=50, description="Maximum search results to consider")


class BatchAnalyzeRequest(BaseModel):
    source_ids: List[str]
    delay_ms: int = Field(500, ge=0)
