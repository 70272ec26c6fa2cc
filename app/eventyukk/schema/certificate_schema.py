from pydantic import BaseModel, Field
from typing import Optional


class CertificateGenerate(BaseModel):
    event_id: int
    participant_id: int


class CertificateGenerateBulk(BaseModel):
    event_id: int
    status: Optional[str] = "approved"


class TemplateUpdate(BaseModel):
    title: Optional[str] = None
    subtitle: Optional[str] = None
    content: Optional[str] = None
    footer: Optional[str] = None
    background_color: Optional[str] = Field(None, alias="backgroundColor")
    primary_color: Optional[str] = Field(None, alias="primaryColor")
    accent_color: Optional[str] = Field(None, alias="accentColor")
    text_color: Optional[str] = Field(None, alias="textColor")
    logo_position: Optional[str] = Field(None, alias="logoPosition")
    signature_text: Optional[str] = Field(None, alias="signatureText")
    certificate_type: Optional[str] = Field(None, alias="certificateType")

    class Config:
        extra = "ignore"
        populate_by_name = True
