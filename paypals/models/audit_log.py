from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from paypals.db import Base
from paypals.utils.clock import utc_now


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # who did it; NULL for system jobs (invitation cleanup)
    performed_by = Column(Integer, nullable=True)

    action_type = Column(String(64), nullable=False)
    target_entity = Column(String(64), nullable=False)
    target_id = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_audit_logs_target", "target_entity", "target_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog id={self.id} action={self.action_type} entity={self.target_entity}:{self.target_id}>"
