from pydantic import BaseModel


class CheckIn(BaseModel):
    token: str
