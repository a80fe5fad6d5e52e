from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class SecurityPolicy(SQLModel, table=True):
    __tablename__ = "security_policies"
    id: int | None = Field(default=None, primary_key=True)
    subject_key: str = Field(unique=True, index=True)
    max_failed_attempts: int = 5
    lockout_duration_minutes: int = 15
    window_minutes: int = 60  # başarısız denemelerin sayıldığı geriye dönük pencere
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
