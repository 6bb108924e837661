"""Usage ledger schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class SubscriptionTier(str, Enum):
    FREE = "free"
    PRO = "pro"


class QuotaStatus(BaseModel):
    can_generate: bool
    used: int
    limit: int
    remaining: int
    resets_at: datetime


class Eligibility(BaseModel):
    allowed: bool
    reason: str | None = None
    tier: SubscriptionTier
    credits_remaining: int | None = None
    quota: QuotaStatus | None = None
