"""Emergency contact schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=3, max_length=32)


class ContactResponse(BaseModel):
    id: int
    name: str
    phone: str
    user_id: int | None
    created_at: datetime
    is_public: bool = False
    can_delete: bool = False

    model_config = {"from_attributes": True}
