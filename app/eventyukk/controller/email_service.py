import asyncio
import logging
import random
import smtplib
from datetime import datetime, timedelta
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Optional

from sqlalchemy.orm import Session

from eventyukk.constant_file import (eventyukk_email,
                                     eventyukk_email_password,
                                     smtp_host,
                                     smtp_port,
                                     smtp_sender_name,
                                     email_timeout_seconds,
                                     Otp_verification_subject,
                                     otp_expiry_minutes)
from eventyukk.models.otp_records_model import EmailOTP

logger = logging.getLogger(__name__)


def smtp_configured():
    return bool(eventyukk_email and eventyukk_email_password and eventyukk_email_password.strip())


async def send_email(to: str, subject: str, html: Optional[str] = None, text: Optional[str] = None,
                     inline_images: Optional[dict] = None):
    """
    Send one email. Never raises: the result dict carries ``success`` and either
    ``messageId`` or ``message``. ``inline_images`` maps a Content-ID to PNG bytes.
    """
    if not to:
        return {"success": False, "message": "Recipient email is required"}

    if not smtp_configured():
        logger.warning("SMTP not configured. Logging email to %s instead of sending: %s", to, subject)
        if text:
            logger.info("Email text: %s", text)
        return {"success": True, "fallback": True}

    message_id = make_msgid(domain=eventyukk_email.split("@")[-1])

    def send_blocking_email():
        message = MIMEMultipart("related")
        message['From'] = formataddr((smtp_sender_name, eventyukk_email))
        message['To'] = to
        message['Subject'] = subject
        message['Message-ID'] = message_id

        alt = MIMEMultipart("alternative")
        if text:
            alt.attach(MIMEText(text, 'plain'))
        if html:
            alt.attach(MIMEText(html, 'html'))
        message.attach(alt)

        for content_id, png_bytes in (inline_images or {}).items():
            img = MIMEImage(png_bytes, _subtype="png", name=f"{content_id}.png")
            img.add_header('Content-ID', f'<{content_id}>')
            img.add_header('Content-Disposition', 'inline', filename=f"{content_id}.png")
            message.attach(img)

        with smtplib.SMTP(smtp_host, smtp_port, timeout=email_timeout_seconds) as server:
            server.starttls()
            server.login(eventyukk_email, eventyukk_email_password)
            server.sendmail(eventyukk_email, to, message.as_string())
        return message_id

    try:
        # Blocking SMTP runs in a worker thread; the request gives up after the timeout
        sent_id = await asyncio.wait_for(asyncio.to_thread(send_blocking_email), timeout=email_timeout_seconds)
    except asyncio.TimeoutError:
        logger.error("Email to %s timed out after %ss", to, email_timeout_seconds)
        return {"success": False, "message": f"Email sending timeout ({email_timeout_seconds:g}s)"}
    except (smtplib.SMTPException, OSError) as e:
        logger.error("SMTP error while sending to %s: %s", to, e)
        return {"success": False, "message": str(e) or "Failed to send email"}

    logger.info("Email sent to %s (%s)", to, sent_id)
    return {"success": True, "messageId": sent_id}


# ------------------ OTP ------------------

def generate_otp():
    return ''.join(random.choices('0123456789', k=6))


async def store_otp(db: Session, user_id: Optional[int], email: str, otp_code: str):
    # Only one live OTP per user/email
    db.query(EmailOTP).filter(
        (EmailOTP.email == email) | ((EmailOTP.user_id == user_id) & (EmailOTP.user_id.isnot(None)))
    ).delete(synchronize_session=False)

    otp_record = EmailOTP(
        user_id=user_id,
        email=email,
        otp_code=otp_code,
        expires_at=datetime.utcnow() + timedelta(minutes=otp_expiry_minutes),
    )
    db.add(otp_record)
    db.commit()
    return True


async def verify_otp(db: Session, email: str, otp_code: str):
    otp_record = db.query(EmailOTP).filter(
        EmailOTP.email == email,
        EmailOTP.otp_code == otp_code,
        EmailOTP.is_used.is_(False),
        EmailOTP.expires_at > datetime.utcnow(),
    ).first()

    if not otp_record:
        return {"success": False, "message": "Invalid or expired OTP"}

    otp_record.is_used = True
    db.commit()
    return {"success": True, "userId": otp_record.user_id}


async def send_otp_email(email: str, otp: str):
    email_message = f"Kode OTP Anda adalah <b>{otp}</b>. Berlaku selama {otp_expiry_minutes} menit."
    return await send_email(
        to=email,
        subject=Otp_verification_subject,
        html=email_message,
        text=f"Kode OTP Anda adalah: {otp}. Berlaku selama {otp_expiry_minutes} menit.",
    )
