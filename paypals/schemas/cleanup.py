# paypals/schemas/cleanup.py

from pydantic import BaseModel, Field


class CleanupIn(BaseModel):
    daysOld: int = Field(30, ge=0)
