"""Login denemeleri defteri: yalnızca ekleme yapılır, retention dışında silinmez."""
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class LoginAttempt(SQLModel, table=True):
    __tablename__ = "login_attempts"
    id: int | None = Field(default=None, primary_key=True)
    subject_key: str = Field(index=True)  # normalize edilmiş hesap (küçük harf e-posta)
    # Ledger yazım anında set eder; pencere hesabı bu damgaya göre yapılır
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
    success: bool = Field(default=False, index=True)
    failure_reason: str | None = None
    device_fingerprint: str | None = Field(default=None, index=True)
    device_info: dict | None = Field(default=None, sa_column=Column(JSON))
    location_info: dict | None = Field(default=None, sa_column=Column(JSON))
    ip_address: str | None = None
    user_agent: str | None = None
