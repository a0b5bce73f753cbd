# paypals/models/circle.py
# -----------------------------------------------------------------------------
# MODEL: Circle (SQLAlchemy)
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
from sqlalchemy import Column, Integer, String, Enum, DateTime, text
from sqlalchemy.orm import relationship

from paypals.db import Base
from paypals.utils.clock import utc_now


class CircleType(enum.Enum):
    friends = "friends"
    family = "family"
    roommates = "roommates"
    travel = "travel"
    project = "project"
    colleagues = "colleagues"
    couple = "couple"


class Circle(Base):
    __tablename__ = "circles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)

    type = Column(
        Enum(CircleType, name="circle_type"),
        nullable=False,
        default=CircleType.friends,
        server_default=text("'friends'"),
        comment="friends|family|roommates|travel|project|colleagues|couple",
    )

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    members = relationship(
        "CircleMember",
        back_populates="circle",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    transactions = relationship(
        "Transaction",
        back_populates="circle",
        cascade="all, delete-orphan",
    )
    invitations = relationship(
        "Invitation",
        back_populates="circle",
        cascade="all, delete-orphan",
    )
