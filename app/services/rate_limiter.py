"""Store tabanlı kayan pencere rate limiter (subject + endpoint).

Önce istek kaydı eklenir, sonra pencere sayılır: eşzamanlı iki istek birbirini
görür, ikisi birden limiti aşamaz. Herhangi bir hata durumunda fail open:
rate limiter arızası meşru girişleri engellememeli.
"""
import logging
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.clock import system_clock
from app.core.errors import StoreUnavailable
from app.models import RateLimitHit
from app.services.window import count_matching, window_start

log = logging.getLogger("kalkan.rate_limit")


class RateLimiter:
    def __init__(self, clock=system_clock):
        self.clock = clock

    def allow(
        self,
        db: Session,
        subject_key: str,
        endpoint: str,
        ip_address: str | None,
        max_requests: int,
        window_minutes: int,
    ) -> bool:
        try:
            hit = RateLimitHit(
                subject_key=subject_key,
                endpoint=endpoint,
                ip_address=ip_address,
                created_at=self.clock.now(),
            )
            db.add(hit)
            db.commit()
            db.refresh(hit)
            start = window_start(hit.created_at, window_minutes)
            count = count_matching(
                db,
                RateLimitHit,
                [RateLimitHit.subject_key == subject_key, RateLimitHit.endpoint == endpoint],
                since=start,
            )
            # Pencere dışına çıkmış kayıtlar artık karar için gereksiz
            db.exec(
                delete(RateLimitHit)
                .where(RateLimitHit.subject_key == subject_key)
                .where(RateLimitHit.endpoint == endpoint)
                .where(RateLimitHit.created_at < start)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except Exception as e:
            db.rollback()
            log.warning("Rate limit check failed, allowing request: subject=%s endpoint=%s error=%s", subject_key, endpoint, e)
            return True
        allowed = count <= max_requests
        if not allowed:
            log.info("Rate limit exceeded: subject=%s endpoint=%s count=%d max=%d", subject_key, endpoint, count, max_requests)
        return allowed

    def purge_before(self, db: Session, cutoff: datetime) -> int:
        try:
            result = db.exec(
                delete(RateLimitHit)
                .where(RateLimitHit.created_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable() from e
        return result.rowcount or 0
