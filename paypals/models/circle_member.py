# paypals/models/circle_member.py
# Circle membership + uniqueness (circle_id, user_id) + role/status

import enum
from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, DateTime, Enum, Index, text
from sqlalchemy.orm import relationship

from paypals.db import Base
from paypals.utils.clock import utc_now


class MemberRole(enum.Enum):
    admin = "admin"
    member = "member"


class MemberStatus(enum.Enum):
    active = "active"
    inactive = "inactive"


class CircleMember(Base):
    __tablename__ = "circle_members"

    id = Column(Integer, primary_key=True, index=True)
    circle_id = Column(Integer, ForeignKey("circles.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    role = Column(
        Enum(MemberRole, name="circle_member_role"),
        nullable=False,
        default=MemberRole.member,
        server_default=text("'member'"),
    )
    status = Column(
        Enum(MemberStatus, name="circle_member_status"),
        nullable=False,
        default=MemberStatus.active,
        server_default=text("'active'"),
    )
    joined_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("circle_id", "user_id", name="uq_circle_members_circle_user"),
        Index("ix_circle_members_circle_status", "circle_id", "status"),
    )

    circle = relationship("Circle", back_populates="members")
    user = relationship("User", lazy="joined")
