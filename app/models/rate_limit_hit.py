"""Rate limit pencere kayıtları: denetim amaçlı değil, pencere dışına çıkanlar silinir."""
from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class RateLimitHit(SQLModel, table=True):
    __tablename__ = "rate_limit_hits"
    id: int | None = Field(default=None, primary_key=True)
    subject_key: str = Field(index=True)
    endpoint: str = Field(index=True)
    ip_address: str | None = None
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
