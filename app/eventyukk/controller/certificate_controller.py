import json
import logging
import re
import secrets
from datetime import date, datetime
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventyukk.controller.registration_controller import find_primary_registration
from eventyukk.controller.token_service import allocate_token_code, find_attendance_token
from eventyukk.errors import ConflictError, EventYukkError, ForbiddenError, NotFoundError, ValidationError
from eventyukk.models.attendance_model import AttendanceRecord, AttendanceToken
from eventyukk.models.certificate_model import Certificate, CertificateTemplate
from eventyukk.models.event_model import Event
from eventyukk.models.registration_model import EventRegistration
from eventyukk.models.user_model import User

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = {
    "title": "CERTIFICATE",
    "subtitle": "OF ACHIEVEMENT",
    "content": ("This certificate is proudly presented to [NAMA_PESERTA] for successfully completing "
                "[NAMA_EVENT] yang diselenggarakan pada [TANGGAL_EVENT]."),
    "footer": "Diterbitkan pada [TANGGAL_TERBIT]",
    "backgroundColor": "#fdfbf7",
    "primaryColor": "#5a4a3a",
    "accentColor": "#d4af37",
    "textColor": "#3a2a1a",
    "logoPosition": "top-center",
    "signatureText": "Event Organizer",
    "certificateType": "achievement",
}

PLACEHOLDERS = {
    "NAMA_PESERTA": "Nama lengkap peserta",
    "EMAIL_PESERTA": "Email peserta",
    "NAMA_EVENT": "Judul event",
    "TANGGAL_EVENT": "Tanggal event (format Indonesia)",
    "TANGGAL_TERBIT": "Tanggal sertifikat diterbitkan",
    "KOTA_EVENT": "Kota / lokasi event",
    "NOMOR_SERTIFIKAT": "Nomor unik sertifikat",
    "PENYELENGGARA": "Nama penyelenggara / organizer",
}

PLACEHOLDER_PATTERN = re.compile(r"\[([A-Z_]+)\]")

INDONESIAN_MONTHS = (
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
)

# template column -> template dict key
TEMPLATE_COLUMNS = {
    "title": "title",
    "subtitle": "subtitle",
    "content": "content",
    "footer_text": "footer",
    "background_color": "backgroundColor",
    "primary_color": "primaryColor",
    "accent_color": "accentColor",
    "text_color": "textColor",
    "logo_position": "logoPosition",
    "signature_text": "signatureText",
    "template_type": "certificateType",
}


def format_indonesian_date(value):
    """1 Januari 2025. Unreadable values render as an empty string."""
    if not value:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.strptime(value.split("T")[0], "%Y-%m-%d")
        except ValueError:
            return ""
    if not isinstance(value, date):
        return ""
    return f"{value.day} {INDONESIAN_MONTHS[value.month - 1]} {value.year}"


def generate_certificate_number(event_id: int, user_id: int):
    return f"EVT-{event_id:04d}-{user_id:04d}-{secrets.token_hex(2).upper()}"


def apply_placeholders(text, values: Dict[str, Any]):
    if not text:
        return ""
    return PLACEHOLDER_PATTERN.sub(lambda match: str(values.get(match.group(1)) or ""), text)


def apply_template_values(template, values):
    return {
        "title": apply_placeholders(template["title"], values),
        "subtitle": apply_placeholders(template["subtitle"], values),
        "content": apply_placeholders(template["content"], values),
        "footer": apply_placeholders(template["footer"], values),
        "signatureText": apply_placeholders(template["signatureText"], values),
    }


# ------------------ Templates ------------------
def _find_active_template(db: Session):
    return db.query(CertificateTemplate).filter(CertificateTemplate.is_active.is_(True)) \
        .order_by(CertificateTemplate.id.desc()).first()


def map_template_row(row):
    if not row:
        return dict(DEFAULT_TEMPLATE)
    return {key: getattr(row, column) or DEFAULT_TEMPLATE[key] for column, key in TEMPLATE_COLUMNS.items()}


async def get_active_template(db: Session):
    return map_template_row(_find_active_template(db))


async def update_template(db: Session, template_data: Dict[str, Any]):
    existing = _find_active_template(db)
    if not existing:
        existing = CertificateTemplate(template_name="Default Template", is_default=True, is_active=True)
        for column, key in TEMPLATE_COLUMNS.items():
            setattr(existing, column, DEFAULT_TEMPLATE[key])
        db.add(existing)

    for column, key in TEMPLATE_COLUMNS.items():
        if template_data.get(key):
            setattr(existing, column, template_data[key])

    db.commit()
    db.refresh(existing)
    return map_template_row(existing)


def list_placeholders():
    return [{"token": f"[{token}]", "description": description} for token, description in PLACEHOLDERS.items()]


# ------------------ Generation ------------------
def build_placeholder_data(participant_name, participant_email, event: Event, organizer_name, certificate_number):
    return {
        "NAMA_PESERTA": participant_name or "Peserta",
        "EMAIL_PESERTA": participant_email or "",
        "NAMA_EVENT": event.title,
        "TANGGAL_EVENT": format_indonesian_date(event.event_date),
        "TANGGAL_TERBIT": format_indonesian_date(datetime.now()),
        "KOTA_EVENT": event.city or event.location or "-",
        "NOMOR_SERTIFIKAT": certificate_number,
        "PENYELENGGARA": organizer_name or "Event Organizer",
    }


def ensure_attendance_record(db: Session, event_id: int, user_id: int):
    """Return the user's attendance record for the event, creating a used token
    and a system record when there is none."""
    record = db.query(AttendanceRecord).filter(
        AttendanceRecord.user_id == user_id,
        AttendanceRecord.event_id == event_id,
    ).order_by(AttendanceRecord.attendance_time.desc()).first()
    if record:
        return record

    now = datetime.now()
    token = find_attendance_token(db, user_id, event_id)
    if token:
        if not token.is_used:
            token.is_used = True
            token.used_at = now
    else:
        primary = find_primary_registration(db, user_id, event_id)
        token = AttendanceToken(
            registration_id=primary.id if primary else None,
            user_id=user_id,
            event_id=event_id,
            token=allocate_token_code(db),
            is_used=True,
            used_at=now,
            expires_at=now,
        )
        db.add(token)
        db.flush()

    record = AttendanceRecord(
        token_id=token.id,
        user_id=user_id,
        event_id=event_id,
        attendance_time=now,
        ip_address="system",
        user_agent="certificate-auto",
    )
    db.add(record)
    db.flush()
    return record


def upsert_certificate(db: Session, user_id: int, event_id: int, attendance_record_id, template, rendered, placeholders):
    now = datetime.now()
    template_data = json.dumps({"template": template, "rendered": rendered, "placeholders": placeholders})

    certificate = db.query(Certificate).filter(
        Certificate.user_id == user_id,
        Certificate.event_id == event_id,
    ).first()
    if certificate:
        # Number stays stable across regenerations
        placeholders["NOMOR_SERTIFIKAT"] = certificate.certificate_number
        rendered.update(apply_template_values(template, placeholders))
        template_data = json.dumps({"template": template, "rendered": rendered, "placeholders": placeholders})
    else:
        certificate = Certificate(
            user_id=user_id,
            event_id=event_id,
            certificate_number=placeholders["NOMOR_SERTIFIKAT"],
        )
        db.add(certificate)

    certificate.attendance_record_id = attendance_record_id
    certificate.certificate_type = template.get("certificateType") or "participation"
    certificate.status = "issued"
    certificate.certificate_url = None
    certificate.template_data = template_data
    certificate.generated_at = now
    certificate.issued_at = now
    return certificate


async def generate_certificate(db: Session, event_id: int, registration_id: int):
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError("Event not found")
    if not event.has_certificate:
        raise ValidationError("Event does not have certificate enabled")

    participant = db.query(EventRegistration).filter(
        EventRegistration.id == registration_id,
        EventRegistration.event_id == event_id,
    ).first()
    if not participant:
        raise NotFoundError("Participant not found for this event")

    user_id = participant.user_id
    user = db.query(User).filter(User.id == user_id).first()
    primary = find_primary_registration(db, user_id, event_id)
    organizer = db.query(User).filter(User.id == event.organizer_id).first() if event.organizer_id else None

    template = map_template_row(_find_active_template(db))
    placeholders = build_placeholder_data(
        (primary.full_name if primary else None) or (user.full_name if user else None),
        (primary.email if primary else None) or (user.email if user else None),
        event,
        organizer.full_name if organizer else None,
        generate_certificate_number(event_id, user_id),
    )
    rendered = apply_template_values(template, placeholders)

    try:
        record = ensure_attendance_record(db, event_id, user_id)
        certificate = upsert_certificate(db, user_id, event_id, record.id, template, rendered, placeholders)
        db.commit()
    except (SQLAlchemyError, ConflictError):
        db.rollback()
        logger.exception("Could not store certificate for user %s event %s", user_id, event_id)
        raise
    db.refresh(certificate)

    logger.info("Certificate %s issued for user %s event %s", certificate.certificate_number, user_id, event_id)
    return {"certificate": certificate.to_dict(), "rendered": rendered, "placeholders": placeholders}


async def generate_bulk(db: Session, event_id: int, status: str = "approved"):
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError("Event not found")

    participants = db.query(EventRegistration.id).filter(
        EventRegistration.event_id == event_id,
        EventRegistration.status.in_((status, "attended")),
    ).order_by(EventRegistration.id).all()
    if not participants:
        raise ValidationError("No participants found for this event")

    results = []
    for (participant_id,) in participants:
        try:
            certificate = await generate_certificate(db, event_id, participant_id)
            results.append({"participant_id": participant_id, "status": "success", "certificate": certificate})
        except (EventYukkError, SQLAlchemyError) as e:
            logger.error("Failed to generate certificate for participant %s: %s", participant_id, e)
            results.append({"participant_id": participant_id, "status": "failed", "message": str(e)})

    return {"total": len(results), "details": results}


# ------------------ User views ------------------
async def list_my_certificates(db: Session, user: User):
    rows = db.query(Certificate, Event).outerjoin(Event, Certificate.event_id == Event.id) \
        .filter(Certificate.user_id == user.id) \
        .order_by(Certificate.created_at.desc(), Certificate.id.desc()).all()

    certificates = []
    for certificate, event in rows:
        data = certificate.to_dict()
        data.update({
            "event_title": event.title if event else None,
            "event_date": event.event_date if event else None,
            "location": event.location if event else None,
        })
        certificates.append(data)
    return {"certificates": certificates}


def _get_owned_certificate(db: Session, user: User, certificate_id: int,
                           error=NotFoundError, message="Certificate not found"):
    certificate = db.query(Certificate).filter(
        Certificate.id == certificate_id,
        Certificate.user_id == user.id,
    ).first()
    if not certificate:
        raise error(message)
    return certificate


async def get_certificate(db: Session, user: User, certificate_id: int):
    return _get_owned_certificate(db, user, certificate_id).to_dict()


async def download_certificate(db: Session, user: User, certificate_id: int):
    certificate = _get_owned_certificate(db, user, certificate_id, ForbiddenError,
                                         "Certificate not found or access denied")
    event = db.query(Event).filter(Event.id == certificate.event_id).first()
    return {
        "certificate": {
            "id": certificate.id,
            "certificate_number": certificate.certificate_number,
            "event_title": event.title if event else None,
            "template_data": json.loads(certificate.template_data) if certificate.template_data else None,
            "issued_at": certificate.issued_at,
        }
    }
