"""Kullanıcıya gösterilen güvenlik uyarıları (hesap kilitlendi vb.)."""
from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class SecurityAlert(SQLModel, table=True):
    __tablename__ = "security_alerts"
    id: int | None = Field(default=None, primary_key=True)
    subject_key: str = Field(index=True)
    alert_type: str = Field(index=True)  # account_locked | multiple_failures | suspicious_login | new_device
    severity: str = "medium"  # low | medium | high | critical
    title: str
    message: str
    recommendation: str | None = None
    resolved: bool = Field(default=False, index=True)
    resolved_at: datetime | None = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
