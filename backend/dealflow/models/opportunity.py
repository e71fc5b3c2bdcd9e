from typing import Optional, Literal
from .base import BaseModelWithID


DealType = Literal[
    "social_post",
    "appearance",
    "endorsement",
    "autograph",
    "camp",
    "merchandise",
    "other",
]


class Opportunity(BaseModelWithID):
    """Brand-posted paid engagement; read-only to this service"""
    brand_id: str
    title: str
    description: Optional[str] = None
    deal_type: DealType = "other"
    compensation_amount: float = 0
    compensation_type: Optional[str] = None
    status: Literal["active", "closed", "draft"] = "active"
