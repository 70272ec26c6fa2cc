from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from eventyukk.database import Base, DictMixin

class User(DictMixin, Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone_number = Column(String(50), nullable=True)
    address = Column(String, nullable=True)
    city = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    institution = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default="user")  # user, admin
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    organized_events = relationship("Event", back_populates="organizer")
