from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from eventyukk.database import Base, DictMixin

PAYMENT_STATUSES = ("pending", "success", "failed", "challenge")

class Payment(DictMixin, Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    registration_id = Column(Integer, ForeignKey("event_registrations.id", ondelete="CASCADE"), nullable=False)

    # EVENT-{event_id}-{user_id}-{timestamp}; idempotency key for webhook deliveries
    order_id = Column(String(100), nullable=False, unique=True, index=True)
    amount = Column(Float, nullable=False, default=0.0)
    payment_method = Column(String(50), nullable=False, default="midtrans")
    status = Column(String(20), nullable=False, default="pending")
    gateway_token = Column(String(255), nullable=True)
    redirect_url = Column(String, nullable=True)
    payment_type = Column(String(50), nullable=True)
    payment_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    registration = relationship("EventRegistration", back_populates="payments")
