from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, UniqueConstraint
from datetime import datetime
from eventyukk.database import Base, DictMixin

class Certificate(DictMixin, Base):
    __tablename__ = "certificates"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_certificate_user_event"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    attendance_record_id = Column(Integer, ForeignKey("attendance_records.id", ondelete="SET NULL"), nullable=True)

    certificate_number = Column(String(50), nullable=False, unique=True)
    certificate_type = Column(String(50), nullable=False, default="participation")
    status = Column(String(20), nullable=False, default="issued")
    certificate_url = Column(String, nullable=True)
    template_data = Column(Text, nullable=True)  # JSON snapshot of template + rendered text

    generated_at = Column(DateTime, nullable=True)
    issued_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CertificateTemplate(DictMixin, Base):
    __tablename__ = "certificate_templates"

    id = Column(Integer, primary_key=True, index=True)
    template_name = Column(String(100), nullable=False, default="Default Template")
    template_type = Column(String(50), nullable=True)
    title = Column(String(255), nullable=True)
    subtitle = Column(String(255), nullable=True)
    content = Column(Text, nullable=True)
    footer_text = Column(String(255), nullable=True)
    background_color = Column(String(20), nullable=True)
    primary_color = Column(String(20), nullable=True)
    accent_color = Column(String(20), nullable=True)
    text_color = Column(String(20), nullable=True)
    logo_position = Column(String(30), nullable=True)
    signature_text = Column(String(255), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
