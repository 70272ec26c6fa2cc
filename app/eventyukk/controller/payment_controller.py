import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventyukk.constant_file import (frontend_url,
                                     midtrans_api_url,
                                     midtrans_client_key,
                                     midtrans_server_key,
                                     midtrans_snap_url,
                                     midtrans_timeout_seconds)
from eventyukk.controller.registration_controller import find_primary_registration
from eventyukk.controller.token_service import (create_attendance_token,
                                                revoke_attendance_token,
                                                send_token_email)
from eventyukk.errors import DependencyError, EventYukkError, NotFoundError, ValidationError
from eventyukk.models.event_model import Event
from eventyukk.models.payment_model import Payment
from eventyukk.models.registration_model import EventRegistration, Registration
from eventyukk.models.user_model import User

logger = logging.getLogger(__name__)


def build_order_id(event_id: int, user_id: int):
    return f"EVENT-{event_id}-{user_id}-{int(time.time() * 1000)}"


def map_gateway_status(transaction_status: Optional[str], fraud_status: Optional[str] = None):
    """Translate a Midtrans transaction/fraud status pair into our payment status.
    Anything unrecognised stays pending."""
    if transaction_status == "capture":
        if fraud_status == "challenge":
            return "challenge"
        if fraud_status == "accept":
            return "success"
        return "pending"
    if transaction_status == "settlement":
        return "success"
    if transaction_status in ("cancel", "deny", "expire"):
        return "failed"
    return "pending"


def _parse_transaction_time(value):
    if not value:
        return None
    try:
        return datetime.strptime(str(value), "%Y-%m-%d %H:%M:%S")
    except ValueError:
        logger.warning("Unreadable transaction_time %r", value)
        return None


# ------------------ Snap checkout ------------------
async def request_snap_transaction(parameter: Dict[str, Any]):
    if not midtrans_server_key:
        raise DependencyError("Payment gateway is not configured")

    try:
        async with httpx.AsyncClient(timeout=midtrans_timeout_seconds) as client:
            response = await client.post(
                midtrans_snap_url,
                json=parameter,
                auth=(midtrans_server_key, ""),
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("Midtrans Snap request failed: %s", e)
        raise DependencyError(f"Payment gateway request failed: {e}")

    return response.json()


async def create_payment_transaction(db: Session, user: User, event_id: int, registration_id: Optional[int] = None):
    event = db.query(Event).filter(Event.id == event_id, Event.is_active.is_(True)).first()
    if not event:
        raise NotFoundError("Event not found or inactive")
    if event.is_free_event:
        raise ValidationError("This event is free. No payment required.")

    query = db.query(EventRegistration).filter(
        EventRegistration.user_id == user.id,
        EventRegistration.event_id == event_id,
    )
    if registration_id:
        registration = query.filter(EventRegistration.id == registration_id).first()
        if not registration:
            raise NotFoundError("Registration not found")
    else:
        registration = query.filter(EventRegistration.status == "pending") \
            .order_by(EventRegistration.created_at.desc(), EventRegistration.id.desc()).first()
        if not registration:
            raise ValidationError("No pending registration found. Please register first.")

    existing_payment = db.query(Payment).filter(
        Payment.registration_id == registration.id,
        Payment.status.in_(("success", "pending")),
    ).order_by(Payment.id.desc()).first()
    if existing_payment and existing_payment.status == "success":
        raise ValidationError("Payment already completed for this registration")

    primary = find_primary_registration(db, user.id, event_id)
    customer_name = (primary.full_name if primary else None) or user.full_name or "Customer"
    customer_email = (primary.email if primary else None) or user.email
    customer_phone = (primary.phone if primary else None) or user.phone_number or ""

    order_id = build_order_id(event_id, user.id)
    amount = float(event.price or 0)
    parameter = {
        "transaction_details": {"order_id": order_id, "gross_amount": amount},
        "customer_details": {
            "first_name": customer_name,
            "email": customer_email,
            "phone": customer_phone,
        },
        "item_details": [{
            "id": f"EVENT-{event_id}",
            "price": amount,
            "quantity": 1,
            "name": event.title[:50],
            "category": "Event Registration",
        }],
        "callbacks": {
            "finish": f"{frontend_url}/payment/success",
            "error": f"{frontend_url}/payment/error",
            "pending": f"{frontend_url}/payment/pending",
        },
    }

    logger.info("Creating Midtrans transaction %s for %s", order_id, amount)
    snap = await request_snap_transaction(parameter)

    if existing_payment:
        existing_payment.order_id = order_id
        existing_payment.gateway_token = snap.get("token")
        existing_payment.redirect_url = snap.get("redirect_url")
        existing_payment.amount = amount
        existing_payment.status = "pending"
    else:
        db.add(Payment(
            registration_id=registration.id,
            order_id=order_id,
            amount=amount,
            payment_method="midtrans",
            status="pending",
            gateway_token=snap.get("token"),
            redirect_url=snap.get("redirect_url"),
        ))
    db.commit()

    return {
        "token": snap.get("token"),
        "redirect_url": snap.get("redirect_url"),
        "order_id": order_id,
        "amount": amount,
        "client_key": midtrans_client_key,
    }


# ------------------ Webhook ------------------
def _apply_gateway_result(db: Session, payment: Payment, transaction: Dict[str, Any]):
    """Write one gateway result onto the payment and its registration rows and
    commit them together. Returns the mapped payment status."""
    registration = payment.registration
    new_status = map_gateway_status(transaction.get("transaction_status"), transaction.get("fraud_status"))
    logger.info("Payment %s: %s -> %s (transaction_status=%s, payment_type=%s)",
                payment.order_id, payment.status, new_status,
                transaction.get("transaction_status"), transaction.get("payment_type"))

    try:
        payment.status = new_status
        payment.payment_type = transaction.get("payment_type") or payment.payment_type
        payment.payment_date = _parse_transaction_time(transaction.get("transaction_time")) or payment.payment_date

        if new_status == "success" and registration:
            if registration.status != "attended":
                registration.status = "confirmed"
            registration.payment_status = "paid"
            registration.payment_date = payment.payment_date or datetime.utcnow()
            db.query(Registration).filter(
                Registration.user_id == registration.user_id,
                Registration.event_id == registration.event_id,
            ).update({"status": registration.status, "payment_status": "paid", "updated_at": datetime.utcnow()},
                     synchronize_session=False)
        elif new_status == "failed" and registration:
            registration.status = "cancelled"
            registration.payment_status = "failed"
            revoke_attendance_token(db, registration.user_id, registration.event_id)

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not update payment %s", payment.order_id)
        raise

    return new_status


async def _finish_reconciliation(db: Session, payment: Payment, new_status: str):
    registration = payment.registration
    token_data = None
    if new_status == "success" and registration:
        token_data = await _issue_token_after_payment(db, registration)
        logger.info("Registration confirmed for order %s", payment.order_id)
    elif new_status == "failed":
        logger.info("Registration cancelled for order %s", payment.order_id)
    return bool(token_data and token_data["created"])


async def handle_payment_notification(db: Session, notification: Dict[str, Any]):
    """
    Reconcile one gateway notification. Payment and registration status changes
    commit together; token issuance and email run afterwards and never turn a
    committed update into a failure.
    """
    order_id = notification.get("order_id")
    if not order_id:
        raise ValidationError("Missing order_id")

    payment = db.query(Payment).filter(Payment.order_id == order_id).with_for_update().first()
    if not payment:
        db.rollback()
        raise NotFoundError("Payment not found")

    new_status = _apply_gateway_result(db, payment, notification)
    token_issued = await _finish_reconciliation(db, payment, new_status)

    return {
        "order_id": order_id,
        "status": new_status,
        "token_issued": token_issued,
    }


# ------------------ Manual verification ------------------
async def request_transaction_status(order_id: str):
    if not midtrans_server_key:
        raise DependencyError("Payment gateway is not configured")

    try:
        async with httpx.AsyncClient(timeout=midtrans_timeout_seconds) as client:
            response = await client.get(
                f"{midtrans_api_url}/v2/{order_id}/status",
                auth=(midtrans_server_key, ""),
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("Midtrans status request for %s failed: %s", order_id, e)
        raise DependencyError(f"Payment gateway request failed: {e}")

    transaction = response.json()
    # Midtrans answers unknown orders with HTTP 200 and a 404 status_code in the body
    if str(transaction.get("status_code")) == "404":
        raise NotFoundError("Transaction not found at payment gateway")
    return transaction


async def verify_payment(db: Session, user: User, order_id: str):
    """Pull the transaction status from the gateway and reconcile it the same
    way a notification would. Recovers payments whose webhook never arrived."""
    payment = db.query(Payment).join(
        EventRegistration, Payment.registration_id == EventRegistration.id
    ).filter(
        Payment.order_id == order_id,
        EventRegistration.user_id == user.id,
    ).first()
    if not payment:
        raise NotFoundError("Payment not found")

    transaction = await request_transaction_status(order_id)

    payment = db.query(Payment).filter(Payment.id == payment.id).with_for_update().one()
    new_status = _apply_gateway_result(db, payment, transaction)
    token_issued = await _finish_reconciliation(db, payment, new_status)

    return {
        "order_id": order_id,
        "status": new_status,
        "token_issued": token_issued,
        "transaction": transaction,
    }


async def _issue_token_after_payment(db: Session, registration: EventRegistration):
    user_id, event_id = registration.user_id, registration.event_id
    try:
        primary = find_primary_registration(db, user_id, event_id)
        token_data = await create_attendance_token(
            db,
            primary.id if primary else None,
            user_id,
            event_id,
            expires_at=primary.attendance_deadline if primary else None,
        )
    except (SQLAlchemyError, EventYukkError):
        db.rollback()
        logger.exception("Failed to generate attendance token for user %s event %s", user_id, event_id)
        return None

    # Repeated deliveries find the existing token and send nothing
    if token_data["created"]:
        user = db.query(User).filter(User.id == user_id).first()
        event = db.query(Event).filter(Event.id == event_id).first()
        recipient_email = (primary.email if primary else None) or (user.email if user else None)
        recipient_name = (primary.full_name if primary else None) or (user.full_name if user else None)
        if recipient_email:
            await send_token_email(
                recipient_email,
                recipient_name,
                event.title if event else "Event Registration",
                token_data["token"],
            )
    return token_data


# ------------------ Status / history ------------------
def _payment_row(payment: Payment, registration: EventRegistration, event: Optional[Event]):
    data = payment.to_dict()
    data.update({
        "event_id": registration.event_id,
        "registration_status": registration.status,
        "event_title": event.title if event else None,
        "event_date": event.event_date if event else None,
    })
    return data


async def get_payment_status(db: Session, user: User, order_id: str):
    row = db.query(Payment, EventRegistration, Event).join(
        EventRegistration, Payment.registration_id == EventRegistration.id
    ).outerjoin(
        Event, EventRegistration.event_id == Event.id
    ).filter(
        Payment.order_id == order_id,
        EventRegistration.user_id == user.id,
    ).first()
    if not row:
        raise NotFoundError("Payment not found")
    return _payment_row(*row)


async def list_payment_history(db: Session, user: User):
    rows = db.query(Payment, EventRegistration, Event).join(
        EventRegistration, Payment.registration_id == EventRegistration.id
    ).outerjoin(
        Event, EventRegistration.event_id == Event.id
    ).filter(
        EventRegistration.user_id == user.id,
    ).order_by(Payment.created_at.desc(), Payment.id.desc()).all()
    return [_payment_row(*row) for row in rows]
