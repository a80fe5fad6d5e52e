"""Güvenlik olay günlüğü: rate limit, kilitlenme, reset, çakışma."""
from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class SecurityLog(SQLModel, table=True):
    __tablename__ = "security_logs"
    id: int | None = Field(default=None, primary_key=True)
    event: str = Field(index=True)  # failed_login | rate_limit | account_locked | lockout_reset | lockout_conflict | manual_lock
    subject_key: str | None = Field(default=None, index=True)
    ip: str | None = None
    endpoint: str | None = None
    detail: str | None = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
