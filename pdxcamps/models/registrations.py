from pydantic import BaseModel, Field
from typing import Optional


class RegistrationRequest(BaseModel):
    child_id: str
    session_id: str
    notes: Optional[str] = Field(None, description="Free-form notes kept with the registration")


class WaitlistRequest(BaseModel):
    child_id: str
    session_id: str


class NotesUpdate(BaseModel):
    notes: Optional[str] = None
