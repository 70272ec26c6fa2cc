from pydantic import BaseModel
from typing import Optional


class RegistrationCreate(BaseModel):
    event_id: int
    event_date: Optional[str] = None
    payment_method: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    institution: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        extra = "ignore"


class RegistrationStatusUpdate(BaseModel):
    status: str

    class Config:
        extra = "ignore"
