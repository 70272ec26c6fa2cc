from sqlalchemy import Column, Integer, String, Float, Text, Date, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from eventyukk.database import Base, DictMixin

EVENT_STATUSES = ("draft", "published", "completed")

class Event(DictMixin, Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)

    # Wall-clock schedule; times are "HH:MM" or "HH:MM:SS" strings
    event_date = Column(Date, nullable=True)
    event_time = Column(String(8), nullable=True)
    end_date = Column(Date, nullable=True)
    end_time = Column(String(8), nullable=True)

    max_participants = Column(Integer, nullable=True)  # NULL means unlimited
    price = Column(Float, nullable=False, default=0.0)
    is_free = Column(Boolean, nullable=False, default=False)
    has_certificate = Column(Boolean, nullable=False, default=False)

    status = Column(String(20), nullable=False, default="draft")  # draft, published, completed
    is_active = Column(Boolean, nullable=False, default=True)
    is_highlighted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    organizer = relationship("User", back_populates="organized_events")
    registrations = relationship("Registration", back_populates="event")
    event_registrations = relationship("EventRegistration", back_populates="event")

    @property
    def is_free_event(self):
        return bool(self.is_free) or float(self.price or 0) == 0
