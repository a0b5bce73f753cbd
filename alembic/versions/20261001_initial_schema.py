"""
Initial schema: roles, users, email verification tokens, circles + members,
transactions + participants, invitations, notifications, audit log.
"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "20261001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


circle_type = sa.Enum(
    "friends", "family", "roommates", "travel", "project", "colleagues", "couple",
    name="circle_type",
)
member_role = sa.Enum("admin", "member", name="circle_member_role")
member_status = sa.Enum("active", "inactive", name="circle_member_status")
transaction_status = sa.Enum("pending", "completed", name="transaction_status")
payment_status = sa.Enum("pending", "paid", name="payment_status")
invitation_status = sa.Enum("pending", "accepted", "rejected", "expired", name="invitation_status")


def upgrade() -> None:
    # 1) Roles + users
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=32), nullable=False, unique=True),
    )
    op.create_index("ix_roles_id", "roles", ["id"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=20), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password", sa.String(length=255), nullable=False, comment="bcrypt hash"),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id"), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paynow_phone", sa.String(length=20), nullable=True, comment="+65XXXXXXXX"),
        sa.Column("paynow_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paynow_nric", sa.String(length=9), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "email_verification_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(length=64), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_email_verification_tokens_id", "email_verification_tokens", ["id"])
    op.create_index("ix_email_verification_tokens_user_id", "email_verification_tokens", ["user_id"])

    # 2) Circles + members
    op.create_table(
        "circles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "type", circle_type, nullable=False, server_default=sa.text("'friends'"),
            comment="friends|family|roommates|travel|project|colleagues|couple",
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_circles_id", "circles", ["id"])
    op.create_index("ix_circles_name", "circles", ["name"])

    op.create_table(
        "circle_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("circle_id", sa.Integer(), sa.ForeignKey("circles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", member_role, nullable=False, server_default=sa.text("'member'")),
        sa.Column("status", member_status, nullable=False, server_default=sa.text("'active'")),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("circle_id", "user_id", name="uq_circle_members_circle_user"),
    )
    op.create_index("ix_circle_members_id", "circle_members", ["id"])
    op.create_index("ix_circle_members_circle_id", "circle_members", ["circle_id"])
    op.create_index("ix_circle_members_user_id", "circle_members", ["user_id"])
    op.create_index("ix_circle_members_circle_status", "circle_members", ["circle_id", "status"])

    # 3) Transactions + participants
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "circle_id", sa.Integer(), sa.ForeignKey("circles.id", ondelete="CASCADE"), nullable=False,
            comment="Circle the expense belongs to",
        ),
        sa.Column(
            "created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False,
            comment="User who created (and paid for) the expense",
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=False, server_default=sa.text("'other'")),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, comment="Expense total, NUMERIC(12,2)"),
        sa.Column(
            "status", transaction_status, nullable=False, server_default=sa.text("'pending'"),
            comment="pending|completed (completed once every participant paid)",
        ),
        sa.Column("location_name", sa.String(length=255), nullable=True),
        sa.Column("location_lat", sa.Float(), nullable=True),
        sa.Column("location_lng", sa.Float(), nullable=True),
        sa.Column("place_id", sa.String(length=255), nullable=True, comment="Google place_id"),
        sa.Column("formatted_address", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_transactions_id", "transactions", ["id"])
    op.create_index("ix_tx_circle_created", "transactions", ["circle_id", "created_at"])
    op.create_index("ix_tx_created_by", "transactions", ["created_by"])

    op.create_table(
        "transaction_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "transaction_id", sa.Integer(), sa.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True,
            comment="NULL for external participants",
        ),
        sa.Column("email", sa.String(length=255), nullable=True, comment="External participant email"),
        sa.Column("amount_owed", sa.Numeric(12, 2), nullable=False, comment="Participant share, NUMERIC(12,2)"),
        sa.Column("payment_status", payment_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_method", sa.String(length=32), nullable=True, comment="paynow|cash|bank_transfer|..."),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("access_token", sa.String(length=64), nullable=True, unique=True),
        sa.Column("access_token_expires", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("transaction_id", "user_id", name="uq_tx_members_tx_user"),
    )
    op.create_index("ix_transaction_members_id", "transaction_members", ["id"])
    op.create_index("ix_tx_members_tx", "transaction_members", ["transaction_id"])
    op.create_index("ix_tx_members_user_status", "transaction_members", ["user_id", "payment_status"])

    # 4) Invitations
    op.create_table(
        "invitations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("circle_id", sa.Integer(), sa.ForeignKey("circles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("inviter_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("invitee_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True, comment="Invitee email when not (yet) registered"),
        sa.Column("status", invitation_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_invitations_id", "invitations", ["id"])
    op.create_index("ix_invitations_status_expires", "invitations", ["status", "expires_at"])
    op.create_index("ix_invitations_invitee_status", "invitations", ["invitee_id", "status"])

    # 5) Notifications + audit log
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notification_channel", sa.String(length=16), nullable=False, server_default=sa.text("'in_app'")),
        sa.Column("delivery_status", sa.String(length=16), nullable=False, server_default=sa.text("'sent'")),
        sa.Column("related_transaction_id", sa.Integer(), nullable=True),
        sa.Column("related_circle_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("performed_by", sa.Integer(), nullable=True),
        sa.Column("action_type", sa.String(length=64), nullable=False),
        sa.Column("target_entity", sa.String(length=64), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])
    op.create_index("ix_audit_logs_target", "audit_logs", ["target_entity", "target_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_table("invitations")
    op.drop_table("transaction_members")
    op.drop_table("transactions")
    op.drop_table("circle_members")
    op.drop_table("circles")
    op.drop_table("email_verification_tokens")
    op.drop_table("users")
    op.drop_table("roles")

    bind = op.get_bind()
    for enum_type in (invitation_status, payment_status, transaction_status, member_status, member_role, circle_type):
        enum_type.drop(bind, checkfirst=True)
