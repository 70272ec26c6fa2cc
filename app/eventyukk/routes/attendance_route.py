from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from eventyukk.controller.attendance_controller import check_in
from eventyukk.database import get_db
from eventyukk.errors import EventYukkError
from eventyukk.response_model import ResponseModel, error_response
from eventyukk.schema.attendance_schema import CheckIn

router = APIRouter()


# ----------------------- Check in -----------------------
@router.post("/check-in", response_description="Check in with an attendance token")
async def attendance_check_in(
    payload: CheckIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    try:
        data = await check_in(
            db,
            payload.token,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
        return ResponseModel(data, "Attendance recorded successfully")
    except EventYukkError as e:
        db.rollback()
        return error_response(response, e)
