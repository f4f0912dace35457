from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class TimeOfDay(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(0, ge=0, le=59)


class AgeRequirements(BaseModel):
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    min_grade: Optional[int] = Field(None, description="Kindergarten is 0, pre-K is -1")
    max_grade: Optional[int] = None


class Address(BaseModel):
    street: str = ""
    city: str = "Portland"
    state: str = "OR"
    zip: str = ""


class CityCreate(BaseModel):
    name: str = Field(..., description="Display name, e.g. 'Portland'")
    slug: Optional[str] = Field(None, description="URL slug; derived from the name when omitted")


class OrganizationCreate(BaseModel):
    name: str
    city_id: str = Field(..., description="City the organization operates in")
    website: Optional[str] = None
    description: Optional[str] = None


class CampCreate(BaseModel):
    organization_id: str
    name: str
    description: Optional[str] = None
    categories: Optional[List[str]] = Field(None, description="Defaults to ['General']")
    age_requirements: Optional[AgeRequirements] = None
    website: Optional[str] = None


class LocationCreate(BaseModel):
    organization_id: str
    name: str
    city_id: str
    address: Optional[Address] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class SessionCreate(BaseModel):
    camp_id: str
    location_id: str
    start_date: str = Field(..., description="YYYY-MM-DD")
    end_date: str = Field(..., description="YYYY-MM-DD, on or after start_date")
    price: int = Field(0, ge=0, description="Price in cents")
    capacity: int = Field(20, ge=0)
    drop_off_time: Optional[TimeOfDay] = None
    pick_up_time: Optional[TimeOfDay] = None
    status: str = Field("draft", description="draft, active, sold_out, cancelled, completed or pending_review")
    waitlist_enabled: bool = True
    waitlist_capacity: Optional[int] = None
    external_registration_url: Optional[str] = None
    age_requirements: Optional[AgeRequirements] = None


class ScrapeSourceCreate(BaseModel):
    name: str
    url: str
    city_id: Optional[str] = None
    organization_id: Optional[str] = None
    scraper_config: Optional[Dict[str, Any]] = Field(None, description="Selector config used by the crawler")
