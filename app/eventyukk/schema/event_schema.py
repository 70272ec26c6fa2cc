from pydantic import BaseModel
from typing import Optional
from datetime import date


class EventCreate(BaseModel):
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    event_date: date
    event_time: Optional[str] = None
    end_date: Optional[date] = None
    end_time: Optional[str] = None
    max_participants: Optional[int] = None
    price: Optional[float] = 0.0
    is_free: Optional[bool] = None
    has_certificate: Optional[bool] = False
    status: Optional[str] = "draft"

    class Config:
        extra = "ignore"


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    event_date: Optional[date] = None
    event_time: Optional[str] = None
    end_date: Optional[date] = None
    end_time: Optional[str] = None
    max_participants: Optional[int] = None
    price: Optional[float] = None
    is_free: Optional[bool] = None
    has_certificate: Optional[bool] = None
    status: Optional[str] = None
    is_active: Optional[bool] = None

    class Config:
        extra = "ignore"


class HighlightUpdate(BaseModel):
    is_highlighted: bool = True
