from pydantic import BaseModel
from typing import Optional


class TransactionCreate(BaseModel):
    event_id: int
    registration_id: Optional[int] = None

    class Config:
        extra = "ignore"
