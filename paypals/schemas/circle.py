# paypals/schemas/circle.py

from typing import Optional
from pydantic import BaseModel, Field, validator

from paypals.utils.sanitize import clean_required


class CircleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    # validated against CircleType in the router (400 on unknown values)
    type: Optional[str] = "friends"

    @validator("name")
    def _clean_name(cls, v: str) -> str:
        return clean_required(v)


class CircleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[str] = None

    @validator("name")
    def _clean_name(cls, v: Optional[str]) -> Optional[str]:
        return clean_required(v) if v is not None else None
