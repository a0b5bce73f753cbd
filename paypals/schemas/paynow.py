# paypals/schemas/paynow.py

from typing import Optional
from pydantic import BaseModel


class PayNowSettingsUpdate(BaseModel):
    payNowPhone: Optional[str] = None
    enabled: Optional[bool] = None


class ExternalConfirmIn(BaseModel):
    payment_method: Optional[str] = "paynow"
