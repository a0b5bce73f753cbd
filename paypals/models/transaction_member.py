# paypals/models/transaction_member.py
# -----------------------------------------------------------------------------
# MODEL: TransactionMember (SQLAlchemy)
# A participant's share of a transaction. Registered users have user_id;
# external participants have email + access_token instead.
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    Numeric,
    DateTime,
    Enum,
    UniqueConstraint,
    Index,
    text,
)
from sqlalchemy.orm import relationship

from paypals.db import Base


class PaymentStatus(enum.Enum):
    pending = "pending"
    paid = "paid"


class TransactionMember(Base):
    __tablename__ = "transaction_members"

    id = Column(Integer, primary_key=True, index=True)

    transaction_id = Column(
        Integer,
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=True,
        comment="NULL for external participants",
    )

    email = Column(String(255), nullable=True, comment="External participant email")

    amount_owed = Column(
        Numeric(12, 2),
        nullable=False,
        comment="Participant share, NUMERIC(12,2)",
    )

    payment_status = Column(
        Enum(PaymentStatus, name="payment_status"),
        nullable=False,
        default=PaymentStatus.pending,
        server_default=text("'pending'"),
    )
    payment_method = Column(String(32), nullable=True, comment="paynow|cash|bank_transfer|...")
    paid_at = Column(DateTime, nullable=True)

    access_token = Column(String(64), unique=True, nullable=True)
    access_token_expires = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("transaction_id", "user_id", name="uq_tx_members_tx_user"),
        Index("ix_tx_members_tx", "transaction_id"),
        Index("ix_tx_members_user_status", "user_id", "payment_status"),
    )

    transaction = relationship("Transaction", back_populates="members")
    user = relationship("User", lazy="joined")
