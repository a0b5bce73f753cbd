# paypals/schemas/invitation.py

from typing import Optional
from pydantic import BaseModel, EmailStr


class InvitationCreate(BaseModel):
    inviteeId: Optional[int] = None
    email: Optional[EmailStr] = None
