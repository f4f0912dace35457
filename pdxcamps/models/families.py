from pydantic import BaseModel, Field
from typing import Optional, List


class FamilyCreate(BaseModel):
    email: str
    display_name: str
    primary_city_id: Optional[str] = None
    referral_code: Optional[str] = Field(None, description="Code of the family that referred this one")


class ChildCreate(BaseModel):
    first_name: str
    birthdate: Optional[str] = Field(None, description="YYYY-MM-DD")
    current_grade: Optional[int] = Field(None, description="Kindergarten is 0, pre-K is -1")


class CustomCampCreate(BaseModel):
    child_id: str
    camp_name: str
    start_date: str
    end_date: str


class FamilyEventCreate(BaseModel):
    child_ids: List[str]
    title: str
    start_date: str
    end_date: str
    event_type: str = Field("other", description="vacation, family_visit, day_camp, summer_school or other")


class ShareCreate(BaseModel):
    child_ids: List[str] = Field(..., description="Children visible through the share token")
