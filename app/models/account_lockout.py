from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class AccountLockout(SQLModel, table=True):
    """Hesap başına tek satır. Yalnızca LockoutEngine yazar; version ile koşullu güncelleme."""
    __tablename__ = "account_lockouts"
    id: int | None = Field(default=None, primary_key=True)
    subject_key: str = Field(unique=True, index=True)
    locked_until: datetime = Field(index=True, sa_type=DateTime)
    failed_attempts: int = 0
    reason: str = "Too many failed login attempts"
    automatic_unlock: bool = True  # False: süre dolsa da reset gerekir (manuel kilit)
    version: int = 1
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
