from sqlalchemy import Column, Integer, String, Float, Text, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from eventyukk.database import Base, DictMixin

# Operational rows use "approved" for free events and "confirmed" for paid ones
ACTIVE_REGISTRATION_STATUSES = ("approved", "confirmed")


class Registration(DictMixin, Base):
    """Primary registration: the participant's contact snapshot and attendance
    fields. Attendance tokens hang off this row."""
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)

    full_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(String, nullable=True)
    city = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    institution = Column(String(255), nullable=True)

    payment_method = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_amount = Column(Float, nullable=False, default=0.0)

    attendance_required = Column(Boolean, nullable=False, default=True)
    attendance_status = Column(String(20), nullable=False, default="pending")  # pending, present, absent
    attendance_deadline = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event = relationship("Event", back_populates="registrations")
    user = relationship("User")


class EventRegistration(DictMixin, Base):
    """Operational registration: status authority for admin screens,
    capacity counting and attendance."""
    __tablename__ = "event_registrations"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_event_registration_user_event"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)

    payment_method = Column(String(50), nullable=True)
    payment_amount = Column(Float, nullable=False, default=0.0)
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_date = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    attendance_status = Column(String(20), nullable=False, default="pending")

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event = relationship("Event", back_populates="event_registrations")
    user = relationship("User")
    payments = relationship("Payment", back_populates="registration", cascade="all, delete-orphan")
