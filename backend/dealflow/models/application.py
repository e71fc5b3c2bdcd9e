from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field
from .base import BaseModelWithID, utc_now


ApplicationStatus = Literal["pending", "under_review", "accepted", "rejected", "withdrawn"]

# Statuses from which the brand may still act and the athlete may still withdraw
OPEN_APPLICATION_STATUSES = frozenset({"pending", "under_review"})


class Application(BaseModelWithID):
    """One athlete's bid for one opportunity"""
    athlete_id: str
    opportunity_id: str
    status: ApplicationStatus = "pending"
    cover_letter: Optional[str] = None
    portfolio_url: Optional[str] = None
    additional_info: Optional[str] = None
    submitted_at: datetime = Field(default_factory=utc_now)
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


class ApplicationCreate(BaseModel):
    """Model for submitting an application"""
    opportunity_id: str = Field(..., min_length=1)
    cover_letter: Optional[str] = Field(default=None, max_length=5000)
    portfolio_url: Optional[str] = Field(default=None, max_length=2000)
    additional_info: Optional[str] = Field(default=None, max_length=5000)


class ApplicationReject(BaseModel):
    """Model for rejecting an application"""
    reason: Optional[str] = Field(default=None, max_length=1000)


class ApplicationStatusCheck(BaseModel):
    """Result of a has-applied lookup"""
    applied: bool
    status: Optional[ApplicationStatus] = None
