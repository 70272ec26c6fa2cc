import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventyukk.constant_file import registration_close_buffer_hours
from eventyukk.controller.token_service import (create_attendance_token,
                                                find_attendance_token,
                                                revoke_attendance_token,
                                                send_token_email)
from eventyukk.errors import ConflictError, DependencyError, NotFoundError, ValidationError
from eventyukk.models.attendance_model import AttendanceToken
from eventyukk.models.event_model import Event
from eventyukk.models.registration_model import (ACTIVE_REGISTRATION_STATUSES,
                                                 EventRegistration,
                                                 Registration)
from eventyukk.models.user_model import User
from eventyukk.utils.schedule import attendance_deadline_for, event_start

logger = logging.getLogger(__name__)

REGISTRATION_CLOSED_MESSAGE = "Pendaftaran sudah ditutup. Event akan dimulai kurang dari 1 jam lagi"
ALREADY_REGISTERED_MESSAGE = "You have already registered for this event"
EVENT_FULL_MESSAGE = "Event is full"
ADMIN_STATUSES = ("pending", "approved", "rejected", "cancelled", "confirmed")
REVOKING_STATUSES = ("rejected", "cancelled")


def _clean(value):
    return (value or "").strip()


def _registrant_contact(user: User, registration_data: Dict[str, Any]):
    """Form values win; the user's profile fills whatever the form left blank."""
    return {
        "full_name": _clean(registration_data.get("full_name") or user.full_name),
        "email": _clean(registration_data.get("email") or user.email),
        "phone": _clean(registration_data.get("phone") or user.phone_number),
        "address": _clean(registration_data.get("address") or user.address),
        "city": _clean(registration_data.get("city") or user.city),
        "province": _clean(registration_data.get("province") or user.province),
        "institution": _clean(registration_data.get("institution") or user.institution),
    }


def _validate_free_registrant(contact):
    if len(contact["full_name"]) < 2:
        raise ValidationError("Nama lengkap wajib diisi (minimal 2 karakter)")
    try:
        validate_email(contact["email"], check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Email wajib diisi dan harus valid")


def _resolve_payment_method(is_free: bool, hint: Optional[str]):
    if is_free:
        return "cash"
    return (_clean(hint) or "midtrans")[:50]


def count_active_registrations(db: Session, event_id: int):
    return db.query(func.count(EventRegistration.id)).filter(
        EventRegistration.event_id == event_id,
        EventRegistration.status.in_(ACTIVE_REGISTRATION_STATUSES),
    ).scalar() or 0


def find_primary_registration(db: Session, user_id: int, event_id: int):
    return db.query(Registration).filter(
        Registration.user_id == user_id,
        Registration.event_id == event_id,
    ).order_by(Registration.id.desc()).first()


def registration_response(registration: EventRegistration, event: Event, token_data=None, primary_id=None):
    data = registration.to_dict()
    data.update({
        "event_title": event.title,
        "event_date": event.event_date,
        "location": event.location,
        "registration_fee": event.price,
        "primary_registration_id": primary_id,
        "token": token_data["token"] if token_data else None,
        "tokenExpiresAt": token_data["expiresAt"] if token_data else None,
    })
    return data


# ------------------ Register for an event ------------------
async def register_for_event(db: Session, user: User, registration_data: Dict[str, Any],
                             now: Optional[datetime] = None):
    """
    Validate the event/user pair, write the primary and operational rows in one
    transaction and, for free events, issue the attendance token with them.

    Raises NotFoundError, ValidationError or ConflictError before anything is
    written. Token email delivery happens after commit and never fails the call.
    """
    now = now or datetime.now()
    event_id = registration_data.get("event_id")

    try:
        # Row lock serializes the capacity check and the inserts per event
        event = db.query(Event).filter(
            Event.id == event_id,
            Event.is_active.is_(True),
        ).with_for_update().first()
        if not event:
            raise NotFoundError("Event not found or inactive")

        date_override = registration_data.get("event_date")
        if not (date_override or event.event_date):
            raise ValidationError("Event date is required")
        try:
            event_datetime = event_start(event, date_override)
        except (TypeError, ValueError) as e:
            logger.warning("Unreadable schedule for event %s: %s", event.id, e)
            raise ValidationError("Invalid event date or time format")

        if now >= event_datetime - timedelta(hours=registration_close_buffer_hours):
            raise ValidationError(REGISTRATION_CLOSED_MESSAGE)

        already_registered = db.query(EventRegistration.id).filter(
            EventRegistration.user_id == user.id,
            EventRegistration.event_id == event.id,
        ).first()
        if already_registered:
            raise ConflictError(ALREADY_REGISTERED_MESSAGE)

        if event.max_participants:
            if count_active_registrations(db, event.id) >= event.max_participants:
                raise ConflictError(EVENT_FULL_MESSAGE)

        contact = _registrant_contact(user, registration_data)
        is_free = event.is_free_event
        if is_free:
            _validate_free_registrant(contact)

        registration_status = "approved" if is_free else "pending"
        payment_status = "paid" if is_free else "pending"
        payment_method = _resolve_payment_method(is_free, registration_data.get("payment_method"))
        payment_amount = float(event.price or 0)
        attendance_deadline = attendance_deadline_for(event, now)
        notes = registration_data.get("notes") or ""

        primary = Registration(
            user_id=user.id,
            event_id=event.id,
            payment_method=payment_method,
            status=registration_status,
            payment_status=payment_status,
            payment_amount=payment_amount,
            attendance_required=True,
            attendance_status="pending",
            attendance_deadline=attendance_deadline,
            notes=notes,
            **contact,
        )
        db.add(primary)
        db.flush()

        operational = EventRegistration(
            user_id=user.id,
            event_id=event.id,
            payment_method=payment_method,
            payment_amount=payment_amount,
            payment_status=payment_status,
            status=registration_status,
            notes=notes,
        )
        db.add(operational)
        try:
            db.flush()
        except IntegrityError:
            # Lost a race with a parallel request for the same pair
            logger.warning("Duplicate operational registration for user %s event %s", user.id, event.id)
            raise ConflictError(ALREADY_REGISTERED_MESSAGE)

        token_data = None
        if registration_status in ACTIVE_REGISTRATION_STATUSES:
            token_data = await create_attendance_token(
                db, primary.id, user.id, event.id, expires_at=attendance_deadline, commit=False
            )

        db.commit()
    except Exception:
        # Undo the primary insert (and release the event lock) on any failure
        db.rollback()
        raise

    db.refresh(operational)
    logger.info("Registration %s created for user %s event %s (%s)",
                operational.id, user.id, event.id, registration_status)

    if token_data:
        await send_token_email(contact["email"], contact["full_name"], event.title, token_data["token"])
    else:
        logger.info("Registration %s pending payment; token follows confirmation", operational.id)

    return registration_response(operational, event, token_data, primary.id)


# ------------------ Check / list / get ------------------
async def check_registration(db: Session, user: User, event_id: int):
    registration = db.query(EventRegistration).filter(
        EventRegistration.user_id == user.id,
        EventRegistration.event_id == event_id,
    ).first()
    return {
        "is_registered": registration is not None,
        "status": registration.status if registration else None,
        "registration_id": registration.id if registration else None,
    }


async def list_my_registrations(db: Session, user: User, page: int = 1, limit: int = 10, status: str = ""):
    page = max(int(page or 1), 1)
    limit = max(int(limit or 10), 1)

    query = db.query(Registration, Event, AttendanceToken.token).outerjoin(
        Event, Registration.event_id == Event.id
    ).outerjoin(
        AttendanceToken,
        (AttendanceToken.user_id == Registration.user_id) & (AttendanceToken.event_id == Registration.event_id),
    ).filter(Registration.user_id == user.id)
    if status:
        query = query.filter(Registration.status == status)

    total = query.count()
    rows = query.order_by(Registration.created_at.desc(), Registration.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()

    registrations = []
    for registration, event, token in rows:
        data = registration.to_dict()
        data.update({
            "event_title": event.title if event else None,
            "event_date": event.event_date if event else None,
            "event_time": event.event_time if event else None,
            "location": event.location if event else None,
            "registration_fee": event.price if event else None,
            "attendance_token": token,
        })
        registrations.append(data)

    return {
        "registrations": registrations,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


def _get_owned_registration(db: Session, user: User, registration_id: int):
    registration = db.query(Registration).filter(
        Registration.id == registration_id,
        Registration.user_id == user.id,
    ).first()
    if not registration:
        raise NotFoundError("Registration not found")
    return registration


async def get_registration(db: Session, user: User, registration_id: int):
    registration = _get_owned_registration(db, user, registration_id)
    event = db.query(Event).filter(Event.id == registration.event_id).first()
    data = registration.to_dict()
    data.update({
        "event_title": event.title if event else None,
        "event_date": event.event_date if event else None,
        "location": event.location if event else None,
        "registration_fee": event.price if event else None,
    })
    return data


# ------------------ Cancel ------------------
async def cancel_registration(db: Session, user: User, registration_id: int):
    registration = _get_owned_registration(db, user, registration_id)

    if registration.status == "cancelled":
        raise ValidationError("Registration is already cancelled")
    if registration.status == "confirmed":
        raise ValidationError("Cannot cancel confirmed registration")
    if registration.status not in ("pending", "approved"):
        raise ValidationError(f"Cannot cancel a registration with status '{registration.status}'")

    registration.status = "cancelled"
    db.query(EventRegistration).filter(
        EventRegistration.user_id == registration.user_id,
        EventRegistration.event_id == registration.event_id,
    ).update({"status": "cancelled", "updated_at": datetime.utcnow()}, synchronize_session=False)
    revoke_attendance_token(db, registration.user_id, registration.event_id)
    db.commit()
    logger.info("Registration %s cancelled by user %s", registration.id, user.id)
    return registration.to_dict()


# ------------------ Admin status update ------------------
async def update_registration_status(db: Session, registration_id: int, status: str):
    """Admin override of the operational status. Approving or confirming also
    marks the registration paid and issues the attendance token."""
    if status not in ADMIN_STATUSES:
        raise ValidationError("Invalid status")

    registration = db.query(EventRegistration).filter(EventRegistration.id == registration_id).first()
    if not registration:
        raise NotFoundError("Registration not found")

    registration.status = status
    if status in ACTIVE_REGISTRATION_STATUSES:
        registration.payment_status = "paid"

    primary = find_primary_registration(db, registration.user_id, registration.event_id)
    if primary:
        primary.status = status
        if status in ACTIVE_REGISTRATION_STATUSES:
            primary.payment_status = "paid"
    if status in REVOKING_STATUSES:
        revoke_attendance_token(db, registration.user_id, registration.event_id)
    db.commit()

    token_data = None
    if status in ACTIVE_REGISTRATION_STATUSES:
        event = db.query(Event).filter(Event.id == registration.event_id).first()
        user = db.query(User).filter(User.id == registration.user_id).first()
        token_data = await create_attendance_token(
            db,
            primary.id if primary else None,
            registration.user_id,
            registration.event_id,
            expires_at=primary.attendance_deadline if primary else None,
        )

        recipient_email = (primary.email if primary else None) or (user.email if user else None)
        recipient_name = (primary.full_name if primary else None) or (user.full_name if user else None) or "Peserta"
        if recipient_email and token_data["created"]:
            await send_token_email(
                recipient_email,
                recipient_name,
                event.title if event else "Event Yukk Event",
                token_data["token"],
            )

    return {
        "id": registration.id,
        "status": registration.status,
        "token": token_data["token"] if token_data else None,
        "tokenExpiresAt": token_data["expiresAt"] if token_data else None,
    }


# ------------------ Resend token email ------------------
async def resend_token_email(db: Session, user: User, registration_id: int):
    registration = _get_owned_registration(db, user, registration_id)
    token = find_attendance_token(db, registration.user_id, registration.event_id)
    if not token:
        raise NotFoundError("No attendance token has been issued for this registration")

    event = db.query(Event).filter(Event.id == registration.event_id).first()
    result = await send_token_email(
        registration.email or user.email,
        registration.full_name or user.full_name,
        event.title if event else "Event Yukk Event",
        token.token,
    )
    # Delivery is the whole operation here, so its failure is the error
    if not result.get("success"):
        raise DependencyError(f"Failed to send token email: {result.get('message', 'unknown error')}")
    return {"sent": True, "messageId": result.get("messageId")}
