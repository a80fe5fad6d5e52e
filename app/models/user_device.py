"""Hesaba bağlı cihazlar: başarılı girişte kaydedilir, kullanıcı güvenilir olarak işaretleyebilir."""
from datetime import datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class UserDevice(SQLModel, table=True):
    __tablename__ = "user_devices"
    __table_args__ = (UniqueConstraint("subject_key", "device_fingerprint", name="uq_user_devices_subject_fingerprint"),)
    id: int | None = Field(default=None, primary_key=True)
    subject_key: str = Field(index=True)
    device_fingerprint: str = Field(index=True)
    device_name: str | None = None
    device_type: str | None = None
    os_name: str | None = None
    os_version: str | None = None
    app_version: str | None = None
    model_name: str | None = None
    brand: str | None = None
    trusted: bool = False
    first_seen: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    last_seen: datetime = Field(default_factory=utcnow, sa_type=DateTime)
