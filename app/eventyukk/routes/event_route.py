from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from eventyukk.controller.event_controller import (add_event_controller,
                                                   get_event,
                                                   get_highlighted_event,
                                                   list_public_events,
                                                   set_highlighted,
                                                   update_event_controller)
from eventyukk.database import get_db
from eventyukk.dependencies import require_admin
from eventyukk.errors import EventYukkError
from eventyukk.models.user_model import User
from eventyukk.response_model import ResponseModel, error_response
from eventyukk.schema.event_schema import EventCreate, EventUpdate, HighlightUpdate

router = APIRouter()


# ----------------------- Public listing -----------------------
@router.get("/", response_description="Retrieve published events")
async def get_events(page: int = 1, limit: int = 10, search: str = "", db: Session = Depends(get_db)):
    data = await list_public_events(db, page, limit, search)
    return ResponseModel(data, "Events retrieved successfully")


@router.get("/highlighted/event", response_description="Retrieve the highlighted event")
async def highlighted_event(db: Session = Depends(get_db)):
    data = await get_highlighted_event(db)
    return ResponseModel(data, "Highlighted event retrieved" if data else "No upcoming event")


@router.get("/{event_id}", response_description="Retrieve one event")
async def event_detail(event_id: int, response: Response, db: Session = Depends(get_db)):
    try:
        data = await get_event(db, event_id)
        return ResponseModel(data, "Event retrieved successfully")
    except EventYukkError as e:
        return error_response(response, e)


# ----------------------- Admin -----------------------
@router.post("/", response_description="Create a new event")
async def add_event(
    event: EventCreate,
    response: Response,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        data = await add_event_controller(db, admin, event.model_dump(exclude_none=True))
        response.status_code = 201
        return ResponseModel(data, "Event created successfully", 201)
    except EventYukkError as e:
        db.rollback()
        return error_response(response, e)


@router.put("/{event_id}", response_description="Update an event")
async def update_event(
    event_id: int,
    event: EventUpdate,
    response: Response,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        data = await update_event_controller(db, event_id, event.model_dump(exclude_unset=True))
        return ResponseModel(data, "Event updated successfully")
    except EventYukkError as e:
        db.rollback()
        return error_response(response, e)


@router.put("/{event_id}/highlight", response_description="Highlight an event")
async def highlight_event(
    event_id: int,
    payload: HighlightUpdate,
    response: Response,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        data = await set_highlighted(db, event_id, payload.is_highlighted)
        return ResponseModel(data, "Event highlight updated")
    except EventYukkError as e:
        return error_response(response, e)
