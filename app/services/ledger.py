"""Login deneme defteri (append-only)."""
import logging
from datetime import datetime, timedelta

from pydantic import BaseModel
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.clock import system_clock
from app.core.errors import InvalidSubject, StoreUnavailable
from app.models import LoginAttempt

log = logging.getLogger("kalkan.ledger")


class AttemptMetadata(BaseModel):
    """Teşhis amaçlı opak bilgiler; doğrulanmadan saklanır."""
    device_fingerprint: str | None = None
    device_info: dict | None = None
    location_info: dict | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    failure_reason: str | None = None


class AttemptLedger:
    def __init__(self, clock=system_clock):
        self.clock = clock

    def record(self, db: Session, subject_key: str, success: bool, metadata: AttemptMetadata | None = None) -> LoginAttempt:
        """Denemeyi kalıcı olarak ekler. Dönen satırın id'si AttemptId, created_at'i kanonik damgadır."""
        if not subject_key:
            raise InvalidSubject()
        meta = metadata or AttemptMetadata()
        attempt = LoginAttempt(
            subject_key=subject_key,
            success=success,
            created_at=self.clock.now(),
            failure_reason=None if success else meta.failure_reason,
            device_fingerprint=meta.device_fingerprint,
            device_info=meta.device_info,
            location_info=meta.location_info,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )
        try:
            db.add(attempt)
            db.commit()
            db.refresh(attempt)
        except SQLAlchemyError as e:
            db.rollback()
            log.error("Login attempt write failed: subject=%s error=%s", subject_key, e)
            raise StoreUnavailable() from e
        return attempt

    def history(self, db: Session, subject_key: str, days: int = 30) -> list[LoginAttempt]:
        since = self.clock.now() - timedelta(days=days)
        stmt = (
            select(LoginAttempt)
            .where(LoginAttempt.subject_key == subject_key)
            .where(LoginAttempt.created_at >= since)
            .order_by(LoginAttempt.created_at.desc(), LoginAttempt.id.desc())
        )
        try:
            return list(db.exec(stmt).all())
        except SQLAlchemyError as e:
            raise StoreUnavailable() from e

    def purge_older_than(self, db: Session, cutoff: datetime) -> int:
        """Retention: cutoff'tan eski denemeleri siler."""
        try:
            result = db.exec(delete(LoginAttempt).where(LoginAttempt.created_at < cutoff))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable() from e
        return result.rowcount or 0
