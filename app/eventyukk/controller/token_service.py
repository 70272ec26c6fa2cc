import base64
import logging
import secrets
import string
from datetime import datetime, timedelta
from io import BytesIO

import qrcode
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventyukk.constant_file import token_length, token_email_subject
from eventyukk.controller.email_service import send_email
from eventyukk.errors import ConflictError
from eventyukk.models.attendance_model import AttendanceToken

logger = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_uppercase + string.digits
MAX_TOKEN_ATTEMPTS = 5


def generate_token_code(length: int = token_length):
    return ''.join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def _token_payload(token: AttendanceToken, created: bool):
    return {
        "id": token.id,
        "token": token.token,
        "expiresAt": token.expires_at,
        "created": created,
    }


def find_attendance_token(db: Session, user_id: int, event_id: int):
    return db.query(AttendanceToken).filter(
        AttendanceToken.user_id == user_id,
        AttendanceToken.event_id == event_id,
    ).first()


def allocate_token_code(db: Session):
    for _ in range(MAX_TOKEN_ATTEMPTS):
        code = generate_token_code()
        if not db.query(AttendanceToken.id).filter(AttendanceToken.token == code).first():
            return code
    raise ConflictError("Could not allocate a unique attendance token")


def revoke_attendance_token(db: Session, user_id: int, event_id: int, now=None):
    """Expire the unused token of a registration that is no longer active.
    Flushes only; the caller commits with its status change."""
    token = find_attendance_token(db, user_id, event_id)
    if not token or token.is_used:
        return None
    token.expires_at = now or datetime.now()
    db.flush()
    logger.info("Attendance token revoked for user %s event %s", user_id, event_id)
    return token


# ------------------ Create attendance token ------------------
async def create_attendance_token(db: Session, registration_id, user_id: int, event_id: int,
                                  expires_at=None, commit: bool = True):
    """
    Issue the attendance token for (user, event), or return the one already issued.

    With ``commit=False`` the row is only flushed so the caller can commit it
    together with its own writes.
    """
    existing = find_attendance_token(db, user_id, event_id)
    if existing:
        logger.info("Attendance token already exists for user %s event %s", user_id, event_id)
        now = datetime.now()
        # A revoked token comes back when its registration is re-activated
        if (not existing.is_used and expires_at and expires_at > now
                and existing.expires_at and existing.expires_at <= now):
            existing.expires_at = expires_at
            if commit:
                db.commit()
            else:
                db.flush()
            logger.info("Attendance token for user %s event %s renewed until %s", user_id, event_id, expires_at)
        return _token_payload(existing, created=False)

    code = allocate_token_code(db)

    token = AttendanceToken(
        registration_id=registration_id,
        user_id=user_id,
        event_id=event_id,
        token=code,
        is_used=False,
        expires_at=expires_at or datetime.now() + timedelta(hours=24),
    )
    db.add(token)

    if not commit:
        db.flush()
        return _token_payload(token, created=True)

    try:
        db.commit()
    except IntegrityError:
        # A concurrent delivery issued the token first
        db.rollback()
        existing = find_attendance_token(db, user_id, event_id)
        if existing:
            return _token_payload(existing, created=False)
        raise
    db.refresh(token)

    logger.info("Attendance token issued for user %s event %s", user_id, event_id)
    return _token_payload(token, created=True)


def render_token_qr(token: str):
    qr_img = qrcode.make(token)
    buffered = BytesIO()
    qr_img.save(buffered, format="PNG")
    return buffered.getvalue()


# ------------------ Send token email ------------------
async def send_token_email(to_email: str, recipient_name: str, event_title: str, token: str):
    """Best-effort delivery of the attendance token. Never raises."""
    try:
        qr_bytes = render_token_qr(token)
        qr_base64 = base64.b64encode(qr_bytes).decode("utf-8")
    except (ValueError, OSError) as e:
        logger.error("Could not render QR code for token email: %s", e)
        qr_bytes, qr_base64 = None, None

    html_body = f"""
    <html>
    <body style="font-family: 'Segoe UI', Arial, sans-serif; background-color: #f4f6f9; color: #333;">
        <div style="background-color: #fff; border-radius: 15px; padding: 25px; margin: 30px auto; width: 600px;">
            <h2 style="text-align: center; color: #007bff;">{event_title}</h2>
            <p>Halo <b>{recipient_name or 'Peserta'}</b>,</p>
            <p>Pendaftaran Anda telah dikonfirmasi. Berikut token kehadiran Anda:</p>
            <p style="text-align: center; font-size: 28px; letter-spacing: 4px;"><b>{token}</b></p>
            {'<p style="text-align: center;"><img src="cid:tokenqr" alt="QR Token" width="200" height="200"/></p>' if qr_base64 else ''}
            <p>Tunjukkan token ini saat registrasi ulang di lokasi event.</p>
        </div>
    </body>
    </html>
    """
    text_body = (
        f"Halo {recipient_name or 'Peserta'},\n\n"
        f"Token kehadiran Anda untuk {event_title}: {token}\n"
        "Tunjukkan token ini saat registrasi ulang di lokasi event."
    )

    result = await send_email(
        to=to_email,
        subject=f"{token_email_subject} - {event_title}",
        html=html_body,
        text=text_body,
        inline_images={"tokenqr": qr_bytes} if qr_bytes else None,
    )
    if not result.get("success"):
        logger.warning("Token email to %s failed: %s", to_email, result.get("message"))
    return result
