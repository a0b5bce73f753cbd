# paypals/models/role.py

from sqlalchemy import Column, Integer, String
from paypals.db import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(32), unique=True, nullable=False)

    def __repr__(self):
        return f"<Role(id={self.id}, name={self.name})>"
