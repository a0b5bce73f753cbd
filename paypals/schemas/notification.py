# paypals/schemas/notification.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, validator

from paypals.utils.sanitize import clean_required


class NotificationCreate(BaseModel):
    user_id: int
    type: str
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    related_transaction_id: Optional[int] = None
    related_circle_id: Optional[int] = None

    @validator("title", "message")
    def _clean_text(cls, v: str) -> str:
        return clean_required(v)


class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    is_read: bool
    notification_channel: str
    delivery_status: str
    related_transaction_id: Optional[int] = None
    related_circle_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
