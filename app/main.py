import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from eventyukk.constant_file import frontend_url, run_sweep_on_startup
from eventyukk.logging_config import setup_logging

from eventyukk.routes.registration_route import router as RegistrationRouter
from eventyukk.routes.registration_route import admin_router as AdminRouter
from eventyukk.routes.payment_route import router as PaymentRouter
from eventyukk.routes.attendance_route import router as AttendanceRouter
from eventyukk.routes.certificate_route import router as CertificateRouter
from eventyukk.routes.history_route import router as HistoryRouter
from eventyukk.routes.event_route import router as EventRouter

from eventyukk.controller.event_cleanup_controller import run_event_sweep
from eventyukk.database import Base, engine, SessionLocal
from eventyukk.models.user_model import User
from eventyukk.models.otp_records_model import EmailOTP
from eventyukk.models.event_model import Event
from eventyukk.models.registration_model import Registration, EventRegistration
from eventyukk.models.attendance_model import AttendanceToken, AttendanceRecord
from eventyukk.models.payment_model import Payment
from eventyukk.models.certificate_model import Certificate, CertificateTemplate

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Event Yukk API")

app.include_router(EventRouter, tags=["Event"], prefix="/events")
app.include_router(RegistrationRouter, tags=["Registration"], prefix="/registrations")
app.include_router(PaymentRouter, tags=["Payment"], prefix="/payments")
app.include_router(AttendanceRouter, tags=["Attendance"], prefix="/attendance")
app.include_router(CertificateRouter, tags=["Certificate"], prefix="/certificates")
app.include_router(HistoryRouter, tags=["History"], prefix="/history")
app.include_router(AdminRouter, tags=["Admin"], prefix="/admin")

# Create all tables (must be after importing all models)
try:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")
except SQLAlchemyError as e:
    logger.warning("Could not create database tables: %s", e)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_url, "http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["POST", "GET", "OPTIONS", "DELETE", "PUT"],
    allow_headers=["*"],
)


@app.on_event("startup")
def sweep_on_startup():
    # Catch up on anything that ended while the service was down
    if not run_sweep_on_startup:
        return
    db = SessionLocal()
    try:
        result = run_event_sweep(db)
        logger.info("Startup event sweep: %s", result)
    except SQLAlchemyError as e:
        logger.error("Startup event sweep failed: %s", e)
    finally:
        db.close()


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}
