from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from eventyukk.database import Base, DictMixin

class AttendanceToken(DictMixin, Base):
    __tablename__ = "attendance_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_attendance_token_user_event"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Points at the primary registration row; NULL only for manual/historical grants
    registration_id = Column(Integer, ForeignKey("registrations.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)

    token = Column(String(32), nullable=False, unique=True, index=True)
    is_used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    registration = relationship("Registration")
    records = relationship("AttendanceRecord", back_populates="token", cascade="all, delete-orphan")


class AttendanceRecord(DictMixin, Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)
    token_id = Column(Integer, ForeignKey("attendance_tokens.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    attendance_time = Column(DateTime, default=datetime.utcnow)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(255), nullable=True)

    token = relationship("AttendanceToken", back_populates="records")
