# paypals/models/notification.py

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Index
from paypals.db import Base
from paypals.utils.clock import utc_now

PAYMENT_DUE = "payment_due"
PAYMENT_RECEIVED = "payment_received"
CIRCLE_INVITATION = "circle_invitation"
MEMBER_JOINED = "member_joined"
TRANSACTION_CREATED = "transaction_created"
GENERAL = "general"

NOTIFICATION_TYPES = frozenset({
    PAYMENT_DUE,
    PAYMENT_RECEIVED,
    CIRCLE_INVITATION,
    MEMBER_JOINED,
    TRANSACTION_CREATED,
    GENERAL,
})


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    type = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)

    notification_channel = Column(String(16), nullable=False, default="in_app")
    delivery_status = Column(String(16), nullable=False, default="sent")

    # no FK: reminders must survive deletion of the transaction/circle
    related_transaction_id = Column(Integer, nullable=True)
    related_circle_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} type={self.type} user={self.user_id}>"
