"""
Email transport using SMTP with Resend as fallback
Compiles MJML templates to HTML and delivers messages for the email microservice
"""

import asyncio
import io
import logging
import smtplib
import ssl
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import (
    EMAIL_FROM_ADDRESS,
    RESEND_API_KEY,
    SMTP_HOST,
    SMTP_PASS,
    SMTP_PORT,
    SMTP_SECURE,
    SMTP_USER,
)

logger = logging.getLogger(__name__)

# Initialize Resend as fallback
resend.api_key = RESEND_API_KEY


class EmailTransportError(Exception):
    """Raised when no configured transport could deliver a message"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(io.BytesIO(mjml_content.encode("utf-8")))
        # mjml_to_html returns a dict with 'html' and 'errors' keys
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailTransportError(f"Failed to compile MJML template: {str(e)}") from e


def smtp_configured() -> bool:
    return bool(SMTP_HOST and SMTP_USER and SMTP_PASS)


def _open_smtp_connection() -> smtplib.SMTP:
    if SMTP_SECURE or SMTP_PORT == 465:
        context = ssl.create_default_context()
        return smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, context=context, timeout=30)
    server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30)
    server.starttls(context=ssl.create_default_context())
    return server


def send_via_smtp(
    to: list[str],
    subject: str,
    from_address: str,
    html_content: Optional[str] = None,
    text_content: Optional[str] = None,
) -> dict:
    """Send email via the configured SMTP server"""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = from_address
    msg["To"] = ", ".join(to)
    message_id = make_msgid(domain="exhibae.com")
    msg["Message-ID"] = message_id

    if text_content:
        msg.attach(MIMEText(text_content, "plain"))
    if html_content:
        msg.attach(MIMEText(html_content, "html"))

    server = _open_smtp_connection()
    try:
        server.login(SMTP_USER, SMTP_PASS)
        server.sendmail(from_address.split("<")[-1].rstrip(">"), to, msg.as_string())
    finally:
        server.quit()

    logger.info(f"✅ SMTP email sent successfully via {SMTP_HOST}")
    return {"id": message_id, "success": True, "provider": "smtp"}


def verify_smtp_connection() -> dict:
    """Open and authenticate an SMTP connection without sending anything"""
    if not smtp_configured():
        return {"success": False, "provider": "smtp", "error": "SMTP is not configured"}
    try:
        server = _open_smtp_connection()
        try:
            server.login(SMTP_USER, SMTP_PASS)
        finally:
            server.quit()
        logger.info(f"✅ SMTP connection verified: {SMTP_HOST}:{SMTP_PORT}")
        return {"success": True, "provider": "smtp", "host": SMTP_HOST, "port": SMTP_PORT}
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"⚠️ SMTP verification failed: {e}")
        return {"success": False, "provider": "smtp", "error": str(e)}


async def deliver_email(
    to: Union[str, list[str]],
    subject: str,
    html_content: Optional[str] = None,
    text_content: Optional[str] = None,
    from_address: Optional[str] = None,
) -> dict:
    """
    Deliver an email using SMTP (if configured) or Resend (fallback)

    Args:
        to: Recipient email(s)
        subject: Email subject line
        html_content: Compiled HTML body
        text_content: Plain-text body
        from_address: Optional sender override

    Returns:
        Send response dict with the provider message id
    """
    recipients = [to] if isinstance(to, str) else to
    sender = from_address or EMAIL_FROM_ADDRESS

    if smtp_configured():
        try:
            logger.info(f"📧 Sending email via SMTP: {SMTP_HOST}")
            return await asyncio.to_thread(
                send_via_smtp, recipients, subject, sender, html_content, text_content
            )
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"⚠️ SMTP failed, falling back to Resend: {e}")

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing and no SMTP")
        raise EmailTransportError("Email service not configured")

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        email_data = {"from": sender, "to": recipients, "subject": subject}
        if html_content:
            email_data["html"] = html_content
        if text_content:
            email_data["text"] = text_content

        response = await asyncio.to_thread(resend.Emails.send, email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        message_id = response.get("id") if isinstance(response, dict) else None
        return {"id": message_id, "success": True, "provider": "resend"}
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailTransportError(f"Failed to send email: {str(e)}") from e


def transport_status() -> dict:
    """Summary of configured transports for the verify/test endpoints"""
    return {
        "smtp": {"configured": smtp_configured(), "host": SMTP_HOST, "port": SMTP_PORT},
        "resend": {"configured": bool(RESEND_API_KEY)},
        "from": EMAIL_FROM_ADDRESS,
        "checked_at": datetime.now(timezone.utc).isoformat(),
    }
