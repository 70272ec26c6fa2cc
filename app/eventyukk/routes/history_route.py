import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from eventyukk.controller.event_cleanup_controller import (get_archived_events,
                                                           get_user_event_history,
                                                           restore_archived_event,
                                                           run_archive_now)
from eventyukk.database import get_db
from eventyukk.dependencies import get_current_user, require_admin
from eventyukk.errors import EventYukkError
from eventyukk.models.user_model import User
from eventyukk.response_model import ResponseModel, error_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/my-events", response_description="The user's event history")
async def my_event_history(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    data = await get_user_event_history(db, current_user)
    return ResponseModel(data, "Event history retrieved")


@router.get("/archived", response_description="Archived events")
async def archived_events(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    data = await get_archived_events(db)
    return ResponseModel(data, "Archived events retrieved")


@router.post("/restore/{event_id}", response_description="Restore an archived event")
async def restore_event(
    event_id: int,
    response: Response,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        data = await restore_archived_event(db, event_id)
        return ResponseModel(data, "Event restored successfully")
    except EventYukkError as e:
        return error_response(response, e)


@router.post("/archive-now", response_description="Archive ended events now")
async def archive_now(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    result = run_archive_now(db)
    if result["skipped"]:
        return ResponseModel(result, "Event sweep already running, archival skipped")
    logger.info("Manual archival by user %s: %s events", admin.id, result["archived"])
    return ResponseModel(result, f"Successfully archived {result['archived']} events")
