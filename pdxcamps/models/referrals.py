from pydantic import BaseModel, Field
from typing import Optional


class AttributeRequest(BaseModel):
    referral_code: str = Field(..., description="Code shared by the referring family")


class ReferralStats(BaseModel):
    referral_code: Optional[str] = None
    credits_earned: int = 0
    credits_applied: int = 0
    credits_available: int = 0
    max_credits: int = 0
    pending_referrals: int = 0
    completed_referrals: int = 0
