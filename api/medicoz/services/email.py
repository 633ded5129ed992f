"""Email service using Resend for sending transactional emails."""

from __future__ import annotations

import logging
from html import escape
from typing import Any

import resend

from .. import settings

logger = logging.getLogger(__name__)

DEFAULT_FROM = settings.RESEND_FROM_EMAIL

_STYLE = """
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', 'Roboto', sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: linear-gradient(135deg, #7f1e16 0%, #5a120e 100%); color: #e2d6c7; padding: 30px; text-align: center; border-radius: 8px 8px 0 0; }
    .content { background: #ffffff; padding: 30px; border: 1px solid #e2d6c7; border-top: none; }
    .quote { background: #f5f5f5; padding: 15px; margin: 20px 0; border-left: 4px solid #7f1e16; border-radius: 4px; }
    .button { display: inline-block; background: #7f1e16; color: #e2d6c7 !important; padding: 12px 30px; text-decoration: none; border-radius: 25px; margin: 20px 0; }
    .footer { text-align: center; padding: 20px; color: #6b5751; font-size: 12px; }
"""


def _init_resend() -> bool:
    """Initialize Resend API key. Returns True if configured."""
    if not settings.RESEND_API_KEY:
        return False
    resend.api_key = settings.RESEND_API_KEY
    return True


def _layout(title: str, subtitle: str, body: str, footer_link: str = "") -> str:
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>{_STYLE}</style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1 style="margin: 0; font-size: 24px;">{title}</h1>
      <p style="margin: 10px 0 0 0; opacity: 0.9;">{subtitle}</p>
    </div>
    <div class="content">
      {body}
    </div>
    <div class="footer">
      <p>The XXperiment - Conversations that matter</p>
      {footer_link}
    </div>
  </div>
</body>
</html>
"""


def _preferences_link() -> str:
    return (
        f'<p style="margin-top: 10px;"><a href="{settings.CLIENT_URL}/profile" '
        'style="color: #7f1e16;">Manage notification preferences</a></p>'
    )


def send_email(
    to: str | list[str],
    subject: str,
    html: str,
    from_email: str | None = None,
) -> dict[str, Any] | None:
    """
    Send an email through Resend.

    While the sending domain is unverified, the message is redirected to the
    configured test recipient with a banner naming the intended recipient.

    Returns:
        Resend API response if successful, None if email sending is disabled or fails
    """
    sender = from_email or DEFAULT_FROM
    if not _init_resend():
        logger.info(f"Email sending disabled - would send '{subject}' to {to} from {sender}")
        return None

    recipients = to if isinstance(to, list) else [to]
    if not settings.RESEND_DOMAIN_VERIFIED:
        logger.info(
            f"Email test mode - sending to {settings.RESEND_TEST_RECIPIENT} instead of {recipients}"
        )
        banner = (
            '<div style="background: #fff3cd; border: 2px solid #856404; padding: 15px; '
            'margin-bottom: 20px; border-radius: 8px;">'
            f"<strong>TEST MODE:</strong> This email was intended for: "
            f"<strong>{escape(', '.join(recipients))}</strong></div>"
        )
        html = banner + html
        subject = f"[TEST] {subject}"
        recipients = [settings.RESEND_TEST_RECIPIENT]

    try:
        params: resend.Emails.SendParams = {
            "from": sender,
            "to": recipients,
            "subject": subject,
            "html": html,
        }
        response = resend.Emails.send(params)
        logger.info(f"Email '{subject}' sent to {recipients}, id: {response.get('id', 'unknown')}")
        return response
    except Exception as e:
        logger.error(f"Failed to send email '{subject}' to {recipients}: {e}")
        return None


# ============================================================================
# TEMPLATES
# ============================================================================


def create_comment_notification_email(
    recipient_name: str,
    commenter_name: str,
    post_title: str,
    comment_content: str,
    post_url: str,
) -> str:
    body = f"""
      <p>Hi {escape(recipient_name)},</p>
      <p><strong>{escape(commenter_name)}</strong> commented on your post:</p>
      <h3 style="color: #7f1e16;">"{escape(post_title)}"</h3>
      <div class="quote">{escape(comment_content)}</div>
      <p style="text-align: center;"><a href="{post_url}" class="button">View Comment</a></p>
      <p style="color: #6b5751; font-size: 14px; margin-top: 30px;">
        You're receiving this because you have email notifications enabled for The XXperiment forum.
      </p>
    """
    return _layout("The XXperiment", "New Comment on Your Post", body, _preferences_link())


def create_like_notification_email(
    recipient_name: str,
    liker_name: str,
    post_title: str,
    post_url: str,
) -> str:
    body = f"""
      <p>Hi {escape(recipient_name)},</p>
      <p style="text-align: center;"><strong>{escape(liker_name)}</strong> liked your post:</p>
      <h3 style="color: #7f1e16; text-align: center;">"{escape(post_title)}"</h3>
      <p style="text-align: center;"><a href="{post_url}" class="button">View Your Post</a></p>
      <p style="color: #6b5751; font-size: 14px; margin-top: 30px;">
        You're receiving this because you have email notifications enabled for The XXperiment forum.
      </p>
    """
    return _layout("The XXperiment", "Someone Liked Your Post", body, _preferences_link())


def create_email_verification_email(name: str, verification_url: str) -> str:
    body = f"""
      <p style="font-size: 16px;">Hi <strong>{escape(name)}</strong>,</p>
      <p style="font-size: 16px;">Thanks for joining The XXperiment community! We're excited to have you here.</p>
      <p style="font-size: 16px;">
        To complete your registration and start engaging in meaningful conversations,
        please verify your email address by clicking the button below:
      </p>
      <p style="text-align: center;"><a href="{verification_url}" class="button">Verify Email Address</a></p>
      <p style="color: #6b5751; font-size: 14px; margin-top: 30px; padding: 15px; background: #f5f5f5; border-radius: 8px;">
        <strong>Security Note:</strong> This link will expire in {settings.EMAIL_VERIFICATION_EXPIRY_HOURS} hours.
        If you didn't create an account with The XXperiment, please ignore this email.
      </p>
      <p style="color: #6b5751; font-size: 13px; margin-top: 20px;">
        If the button doesn't work, copy and paste this link into your browser:<br>
        <a href="{verification_url}" style="color: #7f1e16; word-break: break-all;">{verification_url}</a>
      </p>
    """
    return _layout("Welcome to The XXperiment!", "Verify your email to get started", body)


def create_contact_reply_email(name: str, original_message: str, reply_message: str) -> str:
    body = f"""
      <p>Hi {escape(name)},</p>
      <p>Thank you for reaching out to Medicoz Infosystems. Here is our reply:</p>
      <div class="quote">{escape(reply_message)}</div>
      <p style="color: #6b5751; font-size: 13px;">Your original message:</p>
      <p style="color: #6b5751; font-size: 13px; white-space: pre-wrap;">{escape(original_message)}</p>
    """
    return _layout("Medicoz Infosystems", "A reply to your message", body)


# ============================================================================
# SENDERS
# ============================================================================


def send_verification_email(to_email: str, token: str, name: str) -> dict[str, Any] | None:
    verification_url = f"{settings.CLIENT_URL}/auth/verify-email?token={token}"
    return send_email(
        to=to_email,
        subject="Verify your email - The XXperiment",
        html=create_email_verification_email(name, verification_url),
    )


def send_contact_reply_email(
    to_email: str, name: str, original_message: str, reply_message: str
) -> dict[str, Any] | None:
    return send_email(
        to=to_email,
        subject="Re: your message to Medicoz Infosystems",
        html=create_contact_reply_email(name, original_message, reply_message),
    )
