import logging
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import or_
from sqlalchemy.orm import Session

from eventyukk.errors import NotFoundError, ValidationError
from eventyukk.models.event_model import EVENT_STATUSES, Event
from eventyukk.models.registration_model import ACTIVE_REGISTRATION_STATUSES, EventRegistration
from eventyukk.models.user_model import User

logger = logging.getLogger(__name__)


def _event_response(db: Session, event: Event):
    data = event.to_dict()
    data["registered_count"] = db.query(EventRegistration).filter(
        EventRegistration.event_id == event.id,
        EventRegistration.status.in_(ACTIVE_REGISTRATION_STATUSES),
    ).count()
    data["is_free_event"] = event.is_free_event
    return data


def _check_status(status):
    if status is not None and status not in EVENT_STATUSES:
        raise ValidationError(f"Invalid event status '{status}'")


# ------------------ Add New Event ------------------
async def add_event_controller(db: Session, organizer: User, event_data: Dict[str, Any]):
    _check_status(event_data.get("status"))
    new_event = Event(organizer_id=organizer.id, **event_data)
    if new_event.price is None:
        new_event.price = 0.0
    if new_event.is_free is None:
        new_event.is_free = float(new_event.price) == 0
    db.add(new_event)
    db.commit()
    db.refresh(new_event)
    logger.info("Event %s created by user %s", new_event.id, organizer.id)
    return _event_response(db, new_event)


# ------------------ Update Event ------------------
async def update_event_controller(db: Session, event_id: int, update_data: Dict[str, Any]):
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError("Event not found")
    _check_status(update_data.get("status"))

    for key, val in update_data.items():
        setattr(event, key, val)

    db.commit()
    db.refresh(event)
    return _event_response(db, event)


# ------------------ Public listing ------------------
async def list_public_events(db: Session, page: int = 1, limit: int = 10, search: str = ""):
    page = max(int(page or 1), 1)
    limit = max(int(limit or 10), 1)

    query = db.query(Event).filter(
        Event.is_active.is_(True),
        Event.status == "published",
    )
    if search:
        search_pattern = f"%{search}%"
        query = query.filter(
            or_(
                Event.title.ilike(search_pattern),
                Event.location.ilike(search_pattern),
                Event.city.ilike(search_pattern),
            )
        )

    total = query.count()
    events = query.order_by(Event.event_date.asc(), Event.id.asc()) \
        .offset((page - 1) * limit).limit(limit).all()

    return {
        "events": [_event_response(db, event) for event in events],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


async def get_event(db: Session, event_id: int):
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError("Event not found")
    return _event_response(db, event)


# ------------------ Highlighted event ------------------
async def get_highlighted_event(db: Session, today=None):
    today = today or datetime.now().date()
    visible = db.query(Event).filter(Event.is_active.is_(True), Event.status == "published")

    event = visible.filter(Event.is_highlighted.is_(True)).first()
    if not event:
        # Nearest upcoming event stands in when nothing is highlighted
        event = visible.filter(Event.event_date >= today) \
            .order_by(Event.event_date.asc(), Event.id.asc()).first()
    if not event:
        return None
    return _event_response(db, event)


async def set_highlighted(db: Session, event_id: int, is_highlighted: bool):
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError("Event not found")

    try:
        if is_highlighted:
            db.query(Event).filter(Event.is_highlighted.is_(True), Event.id != event_id) \
                .update({"is_highlighted": False}, synchronize_session=False)
        event.is_highlighted = bool(is_highlighted)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(event)
    logger.info("Event %s highlight set to %s", event_id, event.is_highlighted)
    return _event_response(db, event)
