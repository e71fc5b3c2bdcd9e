from typing import Optional, Literal
from .base import BaseModelWithID
from .opportunity import DealType


DealStatus = Literal[
    "draft",
    "pending",
    "negotiating",
    "accepted",
    "active",
    "completed",
    "cancelled",
    "expired",
    "rejected",
    "paused",
]


class Deal(BaseModelWithID):
    """Accepted, compensated engagement created from an application"""
    athlete_id: str
    brand_id: str
    opportunity_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    deal_type: DealType = "other"
    compensation_amount: float = 0
    compensation_type: str = "fixed"
    status: DealStatus = "pending"
    source_application_id: str
