"""
Email sending service using SMTP.
"""
import html
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from typing import Optional
import logging
from app.core.config import (
    SMTP_HOST,
    SMTP_PORT,
    SMTP_USE_SSL,
    SMTP_USERNAME,
    SMTP_PASSWORD,
    SMTP_FROM_EMAIL,
    SMTP_FROM_NAME,
    FRONTEND_BASE_URL,
    INVITATION_EXPIRY_HOURS,
)

logger = logging.getLogger(__name__)


def build_accept_url(token: str) -> str:
    """Deep link the invitee follows to accept an invitation."""
    return f"{FRONTEND_BASE_URL.rstrip('/')}/invitation/accept?token={token}"


def send_email(
    to_email: str,
    subject: str,
    html_body: str,
    text_body: Optional[str] = None
) -> bool:
    """
    Send an email via SMTP.

    Args:
        to_email: Recipient email address
        subject: Email subject
        html_body: HTML email body
        text_body: Plain text email body (optional)

    Returns:
        True if email sent successfully, False otherwise
    """
    if not SMTP_HOST or not SMTP_USERNAME or not SMTP_PASSWORD:
        logger.error("SMTP configuration is missing. Cannot send email.")
        return False

    try:
        # Create message
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{SMTP_FROM_NAME} <{SMTP_FROM_EMAIL}>"
        msg['To'] = to_email

        if text_body:
            msg.attach(MIMEText(text_body, 'plain', 'utf-8'))

        msg.attach(MIMEText(html_body, 'html', 'utf-8'))

        # Connect to SMTP server
        if SMTP_USE_SSL:
            server = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=10)
        else:
            server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=10)
            server.starttls()
        server.login(SMTP_USERNAME, SMTP_PASSWORD)
        server.send_message(msg)
        server.quit()

        logger.info(f"Email sent successfully to {to_email}")
        return True

    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {str(e)}", exc_info=True)
        return False


def send_invitation_email(
    email: str,
    token: str,
    student_name: str,
    inviter_name: str,
    role: str
) -> bool:
    """
    Send an invitation email with the acceptance link.

    Args:
        email: Invitee's email address
        token: Invitation token, embedded only in the link
        student_name: Name of the student whose record is shared
        inviter_name: Name of the guardian sending the invitation
        role: 'guardian' or 'student'

    Returns:
        True if email sent successfully, False otherwise
    """
    accept_url = build_accept_url(token)
    subject = f"Invitation to join {student_name}'s HomeSchool account"
    safe_student = html.escape(student_name)
    safe_inviter = html.escape(inviter_name)

    text_body = f"""You've been invited!

{inviter_name} has invited you to join {student_name}'s HomeSchool account as a {role}.

Open the link below to accept this invitation:

{accept_url}

This invitation will expire in {INVITATION_EXPIRY_HOURS} hours.

If you did not expect this invitation, you can safely ignore this email."""

    html_body = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: #2563eb;">You've been invited!</h2>
        <p>{safe_inviter} has invited you to join {safe_student}'s HomeSchool account as a {role}.</p>
        <p style="text-align: center; margin: 30px 0;">
            <a href="{accept_url}" style="background-color: #2563eb; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px; display: inline-block;">Accept Invitation</a>
        </p>
        <p style="font-size: 12px; color: #666;">This invitation will expire in {INVITATION_EXPIRY_HOURS} hours.</p>
        <p>If you did not expect this invitation, you can safely ignore this email.</p>
    </div>
</body>
</html>"""

    return send_email(
        to_email=email,
        subject=subject,
        html_body=html_body,
        text_body=text_body
    )


def send_invitation_reminder_email(
    email: str,
    token: str,
    student_name: str,
    expires_at: datetime
) -> bool:
    """Remind an invitee that their invitation is about to expire."""
    accept_url = build_accept_url(token)
    formatted_date = expires_at.strftime("%Y-%m-%d %H:%M UTC")
    safe_student = html.escape(student_name)
    subject = f"Reminder: Your invitation for {student_name}'s HomeSchool account is expiring soon"

    text_body = f"""Invitation Reminder

Your invitation to join {student_name}'s HomeSchool account will expire on {formatted_date}.

Open the link below to accept this invitation before it expires:

{accept_url}

If you did not expect this invitation, you can safely ignore this email."""

    html_body = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: #2563eb;">Invitation Reminder</h2>
        <p>Your invitation to join {safe_student}'s HomeSchool account will expire on {formatted_date}.</p>
        <p><a href="{accept_url}">Accept Invitation</a></p>
        <p>If you did not expect this invitation, you can safely ignore this email.</p>
    </div>
</body>
</html>"""

    return send_email(
        to_email=email,
        subject=subject,
        html_body=html_body,
        text_body=text_body
    )


def send_invitation_accepted_email(
    email: str,
    invitee_name: str,
    student_name: str,
    role: str
) -> bool:
    """Tell the inviter that their invitation was accepted."""
    subject = f"Invitation Accepted for {student_name}'s HomeSchool account"
    safe_student = html.escape(student_name)
    safe_invitee = html.escape(invitee_name)

    text_body = f"""{invitee_name} has accepted your invitation to join {student_name}'s HomeSchool account as a {role}.

They now have access to the student's information according to their role permissions."""

    html_body = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: #2563eb;">Invitation Accepted</h2>
        <p>{safe_invitee} has accepted your invitation to join {safe_student}'s HomeSchool account as a {role}.</p>
        <p>They now have access to the student's information according to their role permissions.</p>
    </div>
</body>
</html>"""

    return send_email(
        to_email=email,
        subject=subject,
        html_body=html_body,
        text_body=text_body
    )
