# paypals/models/transaction.py
# -----------------------------------------------------------------------------
# MODEL: Transaction (SQLAlchemy)
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    Numeric,
    Float,
    DateTime,
    Enum,
    Index,
    text,
)
from sqlalchemy.orm import relationship

from paypals.db import Base
from paypals.utils.clock import utc_now


class TransactionStatus(enum.Enum):
    pending = "pending"
    completed = "completed"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)

    circle_id = Column(
        Integer,
        ForeignKey("circles.id", ondelete="CASCADE"),
        nullable=False,
        comment="Circle the expense belongs to",
    )

    created_by = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        comment="User who created (and paid for) the expense",
    )

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=False, default="other", server_default=text("'other'"))

    total_amount = Column(
        Numeric(12, 2),
        nullable=False,
        comment="Expense total, NUMERIC(12,2)",
    )

    status = Column(
        Enum(TransactionStatus, name="transaction_status"),
        nullable=False,
        default=TransactionStatus.pending,
        server_default=text("'pending'"),
        comment="pending|completed (completed once every participant paid)",
    )

    location_name = Column(String(255), nullable=True)
    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)
    place_id = Column(String(255), nullable=True, comment="Google place_id")
    formatted_address = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("ix_tx_circle_created", "circle_id", "created_at"),
        Index("ix_tx_created_by", "created_by"),
    )

    circle = relationship("Circle", back_populates="transactions")
    creator = relationship("User", foreign_keys=[created_by], lazy="joined")

    members = relationship(
        "TransactionMember",
        back_populates="transaction",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TransactionMember.id",
    )
