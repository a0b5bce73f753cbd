# paypals/services/email.py
# -----------------------------------------------------------------------------
# Outgoing mail (verification, circle invitations, payment reminders).
# Sending never raises: callers treat email as a best-effort side effect and
# get False back when nothing was sent.
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional

from paypals import config
from paypals.utils.money import fmt

log = logging.getLogger(__name__)


def email_enabled() -> bool:
    return bool(config.SMTP_HOST)


def send_email(to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> bool:
    if not email_enabled():
        log.info("email not sent (SMTP_HOST not configured): to=%s subject=%s", to_email, subject)
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = config.SMTP_FROM
    msg["To"] = to_email
    msg.set_content(text_body or "")
    if html_body:
        msg.add_alternative(html_body, subtype="html")

    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.SMTP_TIMEOUT_SECONDS) as smtp:
            smtp.ehlo()
            if config.SMTP_USE_TLS:
                smtp.starttls(context=ssl.create_default_context())
                smtp.ehlo()
            if config.SMTP_USER:
                smtp.login(config.SMTP_USER, config.SMTP_PASSWORD)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError):
        log.exception("email send failed: to=%s subject=%s", to_email, subject)
        return False

    log.info("email sent: to=%s subject=%s", to_email, subject)
    return True


# ===== Templates =====

def send_verification_email(to_email: str, username: str, token: str) -> bool:
    link = f"{config.FRONTEND_URL}/verify-email/{token}"
    text = (
        f"Hi {username},\n\n"
        f"Welcome to PayPals! Please verify your email address by opening the link below:\n\n"
        f"{link}\n\n"
        f"The link expires in 24 hours. If you did not create an account, ignore this email."
    )
    html = (
        f"<p>Hi {username},</p>"
        f"<p>Welcome to PayPals! Please verify your email address:</p>"
        f'<p><a href="{link}">Verify email</a></p>'
        f"<p>The link expires in 24 hours.</p>"
    )
    return send_email(to_email, "Verify Your PayPals Account", text, html)


def send_invitation_email(to_email: str, inviter_name: str, circle_name: str) -> bool:
    link = f"{config.FRONTEND_URL}/invitations"
    text = (
        f"{inviter_name} invited you to join \"{circle_name}\" on PayPals.\n\n"
        f"Sign in or create an account to respond: {link}\n\n"
        f"The invitation expires in 7 days."
    )
    return send_email(to_email, f"You're invited to join {circle_name} on PayPals", text)


def send_payment_reminder_email(
    to_email: str,
    *,
    recipient_name: str,
    transaction_name: str,
    amount,
    creator_name: Optional[str],
    circle_name: Optional[str],
    transaction_id: int,
) -> bool:
    link = f"{config.FRONTEND_URL}/transactions/{transaction_id}"
    text = (
        f"Hi {recipient_name},\n\n"
        f"This is a reminder that you owe ${fmt(amount)} for \"{transaction_name}\""
        f"{f' in {circle_name}' if circle_name else ''}"
        f"{f' (paid by {creator_name})' if creator_name else ''}.\n\n"
        f"Settle up here: {link}"
    )
    return send_email(to_email, f"Payment reminder: {transaction_name}", text)


def send_external_participant_email(to_email: str, *, creator_name: str, transaction_name: str, amount, token: str) -> bool:
    link = f"{config.FRONTEND_URL}/external/{token}"
    text = (
        f"{creator_name} added you to \"{transaction_name}\" on PayPals.\n\n"
        f"Your share is ${fmt(amount)}. View and pay here: {link}"
    )
    return send_email(to_email, f"You've been added to {transaction_name} on PayPals", text)
