from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class ScrapedSession(BaseModel):
    """One session as a scraper reports it. Every field except the name may be missing."""
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    date_raw: Optional[str] = None
    drop_off_hour: Optional[int] = None
    drop_off_minute: Optional[int] = None
    pick_up_hour: Optional[int] = None
    pick_up_minute: Optional[int] = None
    time_raw: Optional[str] = None
    price_in_cents: Optional[int] = None
    price_raw: Optional[str] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    min_grade: Optional[int] = None
    max_grade: Optional[int] = None
    age_grade_raw: Optional[str] = None
    registration_url: Optional[str] = None
    source_product_id: Optional[str] = None
    is_available: Optional[bool] = None
    image_urls: Optional[List[str]] = None


class ValidateRequest(BaseModel):
    sessions: List[ScrapedSession]


class ScrapeResultSubmit(BaseModel):
    """A finished scraper run; stored as a completed job and optionally imported."""
    sessions: List[ScrapedSession]
    organization: Optional[Dict[str, Any]] = Field(None, description="name, website, description, logo")
    import_now: bool = Field(True, description="Import right after storing the job")


class UrlCheck(BaseModel):
    url: str
    status_code: Optional[int] = None
    ok: bool


class UrlSuggestion(BaseModel):
    suggested_url: str


class PriceCapacityUpdate(BaseModel):
    price: Optional[int] = Field(None, ge=0, description="Price in cents")
    capacity: Optional[int] = Field(None, ge=0)
    source_id: Optional[str] = None
