#!/usr/bin/env python3
"""
Script to create database tables
Run this after the database is created to set up all tables and the
default certificate template.
"""
import logging
import os
import sys

# Add the app directory to the path
app_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'app')
sys.path.insert(0, app_dir)

from sqlalchemy.exc import SQLAlchemyError

from eventyukk.database import Base, engine, SessionLocal
from eventyukk.logging_config import setup_logging
from eventyukk.controller.certificate_controller import DEFAULT_TEMPLATE, TEMPLATE_COLUMNS
from eventyukk.models.user_model import User
from eventyukk.models.otp_records_model import EmailOTP
from eventyukk.models.event_model import Event
from eventyukk.models.registration_model import Registration, EventRegistration
from eventyukk.models.attendance_model import AttendanceToken, AttendanceRecord
from eventyukk.models.payment_model import Payment
from eventyukk.models.certificate_model import Certificate, CertificateTemplate

logger = logging.getLogger("create_tables")


def seed_default_template(db):
    if db.query(CertificateTemplate).first():
        return
    template = CertificateTemplate(template_name="Default Template", is_default=True, is_active=True)
    for column, key in TEMPLATE_COLUMNS.items():
        setattr(template, column, DEFAULT_TEMPLATE[key])
    db.add(template)
    db.commit()
    logger.info("Default certificate template created")


def create_tables():
    """Create all database tables"""
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            seed_default_template(db)
        finally:
            db.close()
        logger.info("Database tables created successfully")
        return True
    except SQLAlchemyError as e:
        logger.error("Error creating tables: %s", e)
        return False


if __name__ == "__main__":
    setup_logging()
    sys.exit(0 if create_tables() else 1)
