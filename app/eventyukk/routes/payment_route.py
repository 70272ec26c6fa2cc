import logging

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventyukk.controller.payment_controller import (create_payment_transaction,
                                                     get_payment_status,
                                                     handle_payment_notification,
                                                     list_payment_history,
                                                     verify_payment)
from eventyukk.database import get_db
from eventyukk.dependencies import get_current_user
from eventyukk.errors import EventYukkError
from eventyukk.models.user_model import User
from eventyukk.response_model import ErrorResponseModel, ResponseModel, error_response
from eventyukk.schema.payment_schema import TransactionCreate

logger = logging.getLogger(__name__)

router = APIRouter()


# ----------------------- Create Snap transaction -----------------------
@router.post("/create-transaction", response_description="Start a payment for a paid event")
async def create_transaction(
    transaction: TransactionCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        data = await create_payment_transaction(db, current_user, transaction.event_id, transaction.registration_id)
        return ResponseModel(data, "Transaction created successfully")
    except EventYukkError as e:
        db.rollback()
        return error_response(response, e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Could not store payment transaction")
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return ErrorResponseModel("Database error", 500, str(e))


# ----------------------- Gateway notification -----------------------
@router.post("/notification", response_description="Payment gateway webhook")
async def payment_notification(
    response: Response,
    notification: dict = Body(...),
    db: Session = Depends(get_db),
):
    try:
        await handle_payment_notification(db, notification)
        return {"status": "OK"}
    except EventYukkError as e:
        response.status_code = e.status_code
        return {"status": "ERROR", "message": e.message}
    except SQLAlchemyError as e:
        # Non-2xx makes the gateway retry the delivery
        logger.error("Payment notification for %s failed: %s", notification.get("order_id"), e)
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return {"status": "ERROR", "message": str(e)}


# ----------------------- Payment status -----------------------
@router.get("/status/{order_id}", response_description="Get one payment")
async def payment_status(
    order_id: str,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        data = await get_payment_status(db, current_user, order_id)
        return ResponseModel(data, "Payment status retrieved")
    except EventYukkError as e:
        return error_response(response, e)


# ----------------------- Payment history -----------------------
@router.get("/history", response_description="List the user's payments")
async def payment_history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = await list_payment_history(db, current_user)
    return ResponseModel(data, "Payment history retrieved")


# ----------------------- Verify with gateway -----------------------
@router.post("/verify/{order_id}", response_description="Reconcile a payment from the gateway status")
async def verify_payment_status(
    order_id: str,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        data = await verify_payment(db, current_user, order_id)
        return ResponseModel(data, "Payment verified successfully")
    except EventYukkError as e:
        db.rollback()
        return error_response(response, e)
    except SQLAlchemyError as e:
        logger.exception("Could not reconcile payment %s", order_id)
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return ErrorResponseModel("Database error", 500, str(e))
