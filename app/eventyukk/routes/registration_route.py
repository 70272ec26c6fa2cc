import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventyukk.controller.registration_controller import (cancel_registration,
                                                          check_registration,
                                                          get_registration,
                                                          list_my_registrations,
                                                          register_for_event,
                                                          resend_token_email,
                                                          update_registration_status)
from eventyukk.database import get_db
from eventyukk.dependencies import get_current_user, require_admin
from eventyukk.errors import EventYukkError
from eventyukk.models.user_model import User
from eventyukk.response_model import ErrorResponseModel, ResponseModel, error_response
from eventyukk.schema.registration_schema import RegistrationCreate, RegistrationStatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()


# ----------------------- Register for an event -----------------------
@router.post("/", response_description="Register for an event")
async def create_registration(
    registration: RegistrationCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        data = await register_for_event(db, current_user, registration.model_dump())
        response.status_code = status.HTTP_201_CREATED
        message = "Registration successful" if data["token"] else "Registration created, awaiting payment"
        return ResponseModel(data, message, status.HTTP_201_CREATED)
    except EventYukkError as e:
        return error_response(response, e)
    except SQLAlchemyError as e:
        logger.exception("Registration failed")
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return ErrorResponseModel("Database error", 500, str(e))


# ----------------------- Check registration -----------------------
@router.get("/check/{event_id}", response_description="Check registration for an event")
async def check_event_registration(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = await check_registration(db, current_user, event_id)
    return ResponseModel(data, "Registration status retrieved")


# ----------------------- My registrations -----------------------
@router.get("/my-registrations", response_description="List the user's registrations")
async def my_registrations(
    page: int = 1,
    limit: int = 10,
    status_filter: str = Query("", alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = await list_my_registrations(db, current_user, page, limit, status_filter)
    return ResponseModel(data, "Registrations retrieved successfully")


# ----------------------- Get registration -----------------------
@router.get("/{registration_id}", response_description="Get one registration")
async def registration_detail(
    registration_id: int,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        data = await get_registration(db, current_user, registration_id)
        return ResponseModel(data, "Registration retrieved successfully")
    except EventYukkError as e:
        return error_response(response, e)


# ----------------------- Cancel registration -----------------------
@router.put("/{registration_id}/cancel", response_description="Cancel a registration")
async def cancel(
    registration_id: int,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        data = await cancel_registration(db, current_user, registration_id)
        return ResponseModel(data, "Registration cancelled successfully")
    except EventYukkError as e:
        db.rollback()
        return error_response(response, e)


# ----------------------- Resend token email -----------------------
@router.post("/{registration_id}/resend-token", response_description="Resend the attendance token email")
async def resend_token(
    registration_id: int,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        data = await resend_token_email(db, current_user, registration_id)
        return ResponseModel(data, "Token email sent")
    except EventYukkError as e:
        return error_response(response, e)


# ----------------------- Admin: update status -----------------------
@admin_router.put("/registrations/{registration_id}/status", response_description="Update registration status")
async def admin_update_status(
    registration_id: int,
    status_update: RegistrationStatusUpdate,
    response: Response,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        data = await update_registration_status(db, registration_id, status_update.status)
        return ResponseModel(data, "Registration status updated")
    except EventYukkError as e:
        db.rollback()
        return error_response(response, e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Status update failed for registration %s", registration_id)
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return ErrorResponseModel("Database error", 500, str(e))
