"""
Event lifecycle sweep: absence marking and archival of ended events, plus the
history views that still show archived events.

Archival is a soft delete. Registrations, payments and certificates of an
archived event stay queryable; only public listings drop it.
"""
import logging
import threading
from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventyukk.constant_file import archive_after_months
from eventyukk.errors import NotFoundError
from eventyukk.models.attendance_model import AttendanceToken
from eventyukk.models.certificate_model import Certificate
from eventyukk.models.event_model import Event
from eventyukk.models.registration_model import EventRegistration, Registration
from eventyukk.models.user_model import User
from eventyukk.utils.schedule import event_end

logger = logging.getLogger(__name__)

ARCHIVED_STATUS = "completed"

_sweep_lock = threading.Lock()


# ------------------ Mark absent ------------------
def mark_absent_registrations(db: Session, now: Optional[datetime] = None):
    now = now or datetime.now()
    overdue = db.query(Registration).filter(
        Registration.attendance_required.is_(True),
        Registration.attendance_status == "pending",
        Registration.status != "cancelled",
        Registration.attendance_deadline.isnot(None),
        Registration.attendance_deadline < now,
    ).all()

    updated = 0
    for registration in overdue:
        try:
            registration.attendance_status = "absent"
            registration.status = "failed"
            db.query(EventRegistration).filter(
                EventRegistration.user_id == registration.user_id,
                EventRegistration.event_id == registration.event_id,
                EventRegistration.status.notin_(("cancelled", "attended")),
            ).update({"attendance_status": "absent", "status": "failed", "updated_at": now},
                     synchronize_session=False)
            db.commit()
            updated += 1
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to mark registration %s absent: %s", registration.id, e)

    if updated:
        logger.info("Marked %s registrations as absent", updated)
    return {"updated": updated}


# ------------------ Archive ended events ------------------
def archive_ended_events(db: Session, now: Optional[datetime] = None):
    now = now or datetime.now()
    cutoff = now - relativedelta(months=archive_after_months)

    candidates = db.query(Event).filter(
        Event.is_active.is_(True),
        Event.status == "published",
    ).all()

    archived = 0
    archived_titles = []
    for event in candidates:
        if not event.id:
            logger.warning("Skipping event row without id")
            continue
        try:
            ended_at = event_end(event)
        except (TypeError, ValueError) as e:
            logger.warning("Skipping event %s with unreadable schedule: %s", event.id, e)
            continue
        if ended_at >= cutoff:
            continue

        try:
            event.is_active = False
            event.status = ARCHIVED_STATUS
            db.commit()
            archived += 1
            archived_titles.append(event.title)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to archive event %s: %s", event.id, e)

    if archived:
        logger.info("Archived %s ended events", archived)
    return {"archived": archived, "events": archived_titles}


def run_event_sweep(db: Session, now: Optional[datetime] = None):
    """Run absence marking then archival. A run already in progress makes this a no-op."""
    if not _sweep_lock.acquire(blocking=False):
        logger.info("Event sweep already running, skipping")
        return {"skipped": True}
    try:
        now = now or datetime.now()
        absent = mark_absent_registrations(db, now)
        archived = archive_ended_events(db, now)
        return {"skipped": False, "absent": absent["updated"], "archived": archived["archived"]}
    finally:
        _sweep_lock.release()


def run_archive_now(db: Session, now: Optional[datetime] = None):
    """Manual archival, sharing the sweep's lock."""
    if not _sweep_lock.acquire(blocking=False):
        logger.info("Event sweep already running, skipping manual archival")
        return {"skipped": True, "archived": 0, "events": []}
    try:
        result = archive_ended_events(db, now)
        return {"skipped": False, **result}
    finally:
        _sweep_lock.release()


# ------------------ History ------------------
async def get_user_event_history(db: Session, user: User):
    rows = db.query(Registration, Event, AttendanceToken, Certificate).join(
        Event, Registration.event_id == Event.id
    ).outerjoin(
        AttendanceToken,
        (AttendanceToken.user_id == Registration.user_id) & (AttendanceToken.event_id == Registration.event_id),
    ).outerjoin(
        Certificate,
        (Certificate.user_id == Registration.user_id) & (Certificate.event_id == Registration.event_id),
    ).filter(
        Registration.user_id == user.id,
    ).order_by(Event.event_date.desc(), Registration.id.desc()).all()

    history = []
    for registration, event, token, certificate in rows:
        data = event.to_dict()
        data.update({
            "primary_registration_id": registration.id,
            "registration_status": registration.status,
            "payment_status": registration.payment_status,
            "payment_amount": registration.payment_amount,
            "attendance_status": registration.attendance_status,
            "registered_at": registration.created_at,
            "attendance_token": token.token if token else None,
            "token_used": token.is_used if token else None,
            "certificate_id": certificate.id if certificate else None,
            "certificate_number": certificate.certificate_number if certificate else None,
            "is_archived": not event.is_active and event.status == ARCHIVED_STATUS,
        })
        history.append(data)
    return {"total": len(history), "events": history}


async def get_archived_events(db: Session):
    participants = db.query(
        EventRegistration.event_id, func.count(EventRegistration.id).label("total")
    ).group_by(EventRegistration.event_id).subquery()
    certificates = db.query(
        Certificate.event_id, func.count(Certificate.id).label("total")
    ).group_by(Certificate.event_id).subquery()

    rows = db.query(Event, participants.c.total, certificates.c.total).outerjoin(
        participants, participants.c.event_id == Event.id
    ).outerjoin(
        certificates, certificates.c.event_id == Event.id
    ).filter(
        Event.is_active.is_(False),
        Event.status == ARCHIVED_STATUS,
    ).order_by(Event.event_date.desc()).all()

    events = []
    for event, participant_count, certificate_count in rows:
        data = event.to_dict()
        data["participant_count"] = participant_count or 0
        data["certificate_count"] = certificate_count or 0
        events.append(data)
    return {"total": len(events), "events": events}


async def restore_archived_event(db: Session, event_id: int):
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError("Event not found")
    event.is_active = True
    event.status = "published"
    db.commit()
    logger.info("Event %s restored from archive", event_id)
    return event.to_dict()
