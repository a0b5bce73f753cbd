# paypals/models/user.py

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from paypals.db import Base
from paypals.utils.clock import utc_now


class User(Base):
    """
    Registered PayPals account. PayNow fields are filled from the payment
    settings form and used as the QR recipient for transactions the user creates.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(20), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False, comment="bcrypt hash")
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    phone_number = Column(String(20), nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)

    paynow_phone = Column(String(20), nullable=True, comment="+65XXXXXXXX")
    paynow_enabled = Column(Boolean, nullable=False, default=False)
    paynow_nric = Column(String(9), unique=True, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    role = relationship("Role", lazy="joined")

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, email={self.email})>"
