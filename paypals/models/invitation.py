# paypals/models/invitation.py

from __future__ import annotations

import enum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Index, text
from sqlalchemy.orm import relationship

from paypals.db import Base
from paypals.utils.clock import utc_now


class InvitationStatus(enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    expired = "expired"


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, index=True)
    circle_id = Column(Integer, ForeignKey("circles.id", ondelete="CASCADE"), nullable=False)
    inviter_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    invitee_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    email = Column(String(255), nullable=True, comment="Invitee email when not (yet) registered")

    status = Column(
        Enum(InvitationStatus, name="invitation_status"),
        nullable=False,
        default=InvitationStatus.pending,
        server_default=text("'pending'"),
    )
    expires_at = Column(DateTime, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("ix_invitations_status_expires", "status", "expires_at"),
        Index("ix_invitations_invitee_status", "invitee_id", "status"),
    )

    circle = relationship("Circle", back_populates="invitations", lazy="joined")
    inviter = relationship("User", foreign_keys=[inviter_id], lazy="joined")
    invitee = relationship("User", foreign_keys=[invitee_id], lazy="joined")
