import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from eventyukk.errors import ConflictError, NotFoundError, ValidationError
from eventyukk.models.attendance_model import AttendanceRecord, AttendanceToken
from eventyukk.models.event_model import Event
from eventyukk.models.registration_model import (ACTIVE_REGISTRATION_STATUSES,
                                                 EventRegistration,
                                                 Registration)
from eventyukk.models.user_model import User

logger = logging.getLogger(__name__)


# ------------------ Check in with attendance token ------------------
async def check_in(db: Session, token: str, ip_address: Optional[str] = None,
                   user_agent: Optional[str] = None, now: Optional[datetime] = None):
    now = now or datetime.now()
    code = (token or "").strip().upper()
    if not code:
        raise ValidationError("Token is required")

    attendance_token = db.query(AttendanceToken).filter(AttendanceToken.token == code).with_for_update().first()
    if not attendance_token:
        raise NotFoundError("Invalid attendance token")
    if attendance_token.is_used:
        raise ConflictError("This token has already been used")

    user_id, event_id = attendance_token.user_id, attendance_token.event_id
    registration = db.query(EventRegistration).filter(
        EventRegistration.user_id == user_id,
        EventRegistration.event_id == event_id,
    ).first()
    if not registration or registration.status not in ACTIVE_REGISTRATION_STATUSES:
        raise ValidationError("Registration for this token is not active")
    if attendance_token.expires_at and attendance_token.expires_at < now:
        raise ValidationError("Attendance token has expired")

    try:
        attendance_token.is_used = True
        attendance_token.used_at = now
        record = AttendanceRecord(
            token_id=attendance_token.id,
            user_id=user_id,
            event_id=event_id,
            attendance_time=now,
            ip_address=(ip_address or "")[:64] or None,
            user_agent=(user_agent or "")[:255] or None,
        )
        db.add(record)

        db.query(Registration).filter(
            Registration.user_id == user_id,
            Registration.event_id == event_id,
        ).update({"attendance_status": "present", "updated_at": now}, synchronize_session=False)
        db.query(EventRegistration).filter(
            EventRegistration.user_id == user_id,
            EventRegistration.event_id == event_id,
        ).update({"attendance_status": "present", "status": "attended", "updated_at": now},
                 synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)

    user = db.query(User).filter(User.id == user_id).first()
    event = db.query(Event).filter(Event.id == event_id).first()
    logger.info("User %s checked in to event %s", user_id, event_id)

    return {
        "record_id": record.id,
        "attendance_time": record.attendance_time,
        "user": {"id": user_id, "full_name": user.full_name if user else None},
        "event": {"id": event_id, "title": event.title if event else None},
    }
