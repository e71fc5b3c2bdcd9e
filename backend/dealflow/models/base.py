from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
import uuid


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseModelWithID(BaseModel):
    """Base model with common fields for all entities"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore"
    )

    def to_document(self) -> dict:
        """Serialize for storage; the id lives in the document key."""
        return self.model_dump(mode="json", exclude={"id", "created_at", "updated_at"})
