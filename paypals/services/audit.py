# paypals/services/audit.py
from __future__ import annotations
from typing import Optional

from sqlalchemy.orm import Session

from paypals.models.audit_log import AuditLog

# Action types (use these in routers)
CREATE = "create"
UPDATE = "update"
DELETE = "delete"
LEAVE = "leave"
REMOVE_MEMBER = "remove_member"
PROMOTE_MEMBER = "promote_member"

INVITE = "invite"
JOIN = "join"
REJECT = "reject"
CANCEL_INVITATION = "cancel_invitation"
EXPIRE_INVITATION = "expire_invitation"

AUTO_ADD_CREATOR = "auto_add_creator"
SECURITY_VIOLATION = "security_violation"
PAYMENT_STATUS = "payment_status"

ENTITY_CIRCLE = "circle"
ENTITY_INVITATION = "invitation"
ENTITY_TRANSACTION = "transaction"


def log_action(
    db: Session,
    *,
    action_type: str,
    target_entity: str,
    target_id: Optional[int] = None,
    performed_by: Optional[int] = None,
    description: Optional[str] = None,
) -> AuditLog:
    """
    Single entry point for audit rows. Called inside the same unit of work as
    the business change and does not commit.
    """
    row = AuditLog(
        performed_by=performed_by,
        action_type=action_type,
        target_entity=target_entity,
        target_id=target_id,
        description=description,
    )
    db.add(row)
    return row
