"""Hesap kilitleme motoru.

Durumlar: UNLOCKED (kayıt yok / süresi geçmiş) ve LOCKED (account_lockouts satırı).
Paylaşılan tek durum veritabanıdır; süreçler arası koordinasyon koşullu yazımla
(version sütunu + unique subject_key) yapılır, süreç içi kilit kullanılmaz.
Süresi dolan kilit okuma anında kilitsiz sayılır; cleanup yalnızca depolama temizliğidir.
"""
import logging
import math
import random
import time
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.core.clock import system_clock
from app.core.config import settings
from app.core.errors import LockoutDecisionConflict, StoreUnavailable
from app.models import AccountLockout, LoginAttempt
from app.services.events import raise_lockout_alert, record_security_event
from app.services.ledger import AttemptLedger, AttemptMetadata
from app.services.monitoring import check_failed_attempt, check_successful_attempt
from app.services.policy import get_effective_policy
from app.services.window import count_matching, window_start

log = logging.getLogger("kalkan.lockout")

AUTO_LOCK_REASON = "Too many failed login attempts"


@dataclass(frozen=True)
class LockoutDecision:
    should_lockout: bool
    lockout_duration_minutes: int
    failed_attempts_count: int
    locked_until: datetime | None = None


@dataclass(frozen=True)
class LockoutInfo:
    is_locked: bool
    locked_until: datetime | None
    failed_attempts: int
    minutes_remaining: int
    # Manuel kilit: süre dolsa da reset beklenir
    requires_reset: bool = False


UNLOCKED = LockoutInfo(is_locked=False, locked_until=None, failed_attempts=0, minutes_remaining=0)


def _is_active(row: AccountLockout, now: datetime) -> bool:
    # Manuel kilit (automatic_unlock=False) süre dolsa da reset beklenir
    return row.locked_until > now or not row.automatic_unlock


def _minutes_remaining(locked_until: datetime, now: datetime) -> int:
    return max(0, math.ceil((locked_until - now).total_seconds() / 60))


class LockoutEngine:
    def __init__(
        self,
        ledger: AttemptLedger | None = None,
        clock=system_clock,
        max_retries: int | None = None,
        retry_backoff_ms: int | None = None,
    ):
        self.clock = clock
        self.ledger = ledger or AttemptLedger(clock=clock)
        self.max_retries = max_retries if max_retries is not None else settings.lockout_max_retries
        self.retry_backoff_ms = retry_backoff_ms if retry_backoff_ms is not None else settings.lockout_retry_backoff_ms

    def record_attempt_and_evaluate(
        self,
        db: Session,
        subject_key: str,
        success: bool,
        metadata: AttemptMetadata | None = None,
    ) -> LockoutDecision:
        # 1) Denetim kaydı her zaman önce; yazılamazsa StoreUnavailable ile tüm işlem iptal
        attempt = self.ledger.record(db, subject_key, success, metadata)

        # 2) Başarılı giriş her zaman kazanır
        now = attempt.created_at
        if success:
            self._clear(db, subject_key)
            check_successful_attempt(db, subject_key, attempt.device_fingerprint, attempt.device_info, now)
            return LockoutDecision(should_lockout=False, lockout_duration_minutes=0, failed_attempts_count=0)

        record_security_event(
            db,
            "failed_login",
            subject_key=subject_key,
            ip=attempt.ip_address,
            detail=attempt.failure_reason,
        )

        # 3) Pencere içindeki başarısız denemeler (az önce yazılan dahil)
        policy = get_effective_policy(db, subject_key)
        try:
            failed = count_matching(
                db,
                LoginAttempt,
                [LoginAttempt.subject_key == subject_key, LoginAttempt.success == False],  # noqa: E712
                since=window_start(now, policy.window_minutes),
                until=now,
            )
        except SQLAlchemyError as e:
            raise StoreUnavailable() from e

        if failed < policy.max_failed_attempts:
            check_failed_attempt(db, subject_key, now)
            return LockoutDecision(should_lockout=False, lockout_duration_minutes=0, failed_attempts_count=failed)

        locked_until, newly_locked = self._apply_lock(
            db,
            subject_key,
            computed_until=now + timedelta(minutes=policy.lockout_duration_minutes),
            failed_attempts=failed,
            reason=AUTO_LOCK_REASON,
            automatic_unlock=True,
            now=now,
        )
        if newly_locked:
            log.warning(
                "Account locked: subject=%s failed=%d minutes=%d",
                subject_key,
                failed,
                policy.lockout_duration_minutes,
            )
            raise_lockout_alert(db, subject_key, failed, policy.lockout_duration_minutes, now=now)
            record_security_event(
                db,
                "account_locked",
                subject_key=subject_key,
                ip=attempt.ip_address,
                detail=f"failed={failed} until={locked_until.isoformat()}",
            )
        check_failed_attempt(db, subject_key, now)
        return LockoutDecision(
            should_lockout=True,
            lockout_duration_minutes=policy.lockout_duration_minutes,
            failed_attempts_count=failed,
            locked_until=locked_until,
        )

    def _read_lockout(self, db: Session, subject_key: str) -> AccountLockout | None:
        stmt = (
            select(AccountLockout)
            .where(AccountLockout.subject_key == subject_key)
            .execution_options(populate_existing=True)
        )
        return db.exec(stmt).first()

    def _apply_lock(
        self,
        db: Session,
        subject_key: str,
        computed_until: datetime,
        failed_attempts: int,
        reason: str,
        automatic_unlock: bool,
        now: datetime,
    ) -> tuple[datetime, bool]:
        """Oku, birleştir, koşullu yaz. Dönen: (saklanan locked_until, yeni mi kilitlendi).

        locked_until hiçbir zaman kısalmaz: max(mevcut, hesaplanan).
        """
        for attempt_no in range(1, self.max_retries + 1):
            try:
                row = self._read_lockout(db, subject_key)
                if row is None:
                    db.add(
                        AccountLockout(
                            subject_key=subject_key,
                            locked_until=computed_until,
                            failed_attempts=failed_attempts,
                            reason=reason,
                            automatic_unlock=automatic_unlock,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    db.commit()
                    return computed_until, True

                was_active = _is_active(row, now)
                extends = computed_until >= row.locked_until
                new_until = max(row.locked_until, computed_until)
                values = {
                    "locked_until": new_until,
                    "failed_attempts": max(row.failed_attempts, failed_attempts) if was_active else failed_attempts,
                    "reason": reason if extends or not was_active else row.reason,
                    "automatic_unlock": automatic_unlock and (row.automatic_unlock or not was_active),
                    "version": row.version + 1,
                    "updated_at": now,
                }
                stmt = (
                    update(AccountLockout)
                    .where(AccountLockout.subject_key == subject_key)
                    .where(AccountLockout.version == row.version)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                result = db.exec(stmt)
                if result.rowcount == 1:
                    db.commit()
                    return new_until, not was_active
                db.rollback()
            except IntegrityError:
                # Aynı anda başka bir süreç ilk kaydı ekledi
                db.rollback()
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreUnavailable() from e
            log.info("Lockout write conflict: subject=%s attempt=%d/%d", subject_key, attempt_no, self.max_retries)
            if attempt_no < self.max_retries:
                self._backoff(attempt_no)

        record_security_event(db, "lockout_conflict", subject_key=subject_key, detail=f"retries={self.max_retries}")
        raise LockoutDecisionConflict()

    def _backoff(self, attempt_no: int) -> None:
        # Çakışan yazıcılar aynı anda tekrar okumasın diye rastgele bekleme
        if self.retry_backoff_ms > 0:
            time.sleep(random.uniform(0, self.retry_backoff_ms * attempt_no) / 1000)

    def _clear(self, db: Session, subject_key: str) -> int:
        try:
            result = db.exec(delete(AccountLockout).where(AccountLockout.subject_key == subject_key))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable() from e
        return result.rowcount or 0

    def is_locked(self, db: Session, subject_key: str) -> bool:
        try:
            row = self._read_lockout(db, subject_key)
        except SQLAlchemyError as e:
            raise StoreUnavailable() from e
        return row is not None and _is_active(row, self.clock.now())

    def get_lockout_info(self, db: Session, subject_key: str) -> LockoutInfo:
        try:
            row = self._read_lockout(db, subject_key)
        except SQLAlchemyError as e:
            raise StoreUnavailable() from e
        now = self.clock.now()
        if row is None or not _is_active(row, now):
            return UNLOCKED
        expired = row.locked_until <= now
        return LockoutInfo(
            is_locked=True,
            locked_until=None if expired else row.locked_until,
            failed_attempts=row.failed_attempts,
            minutes_remaining=0 if expired else _minutes_remaining(row.locked_until, now),
            requires_reset=not row.automatic_unlock,
        )

    def reset_lockout(self, db: Session, subject_key: str, actor: str | None = None) -> bool:
        """Koşulsuz temizler (şifre sıfırlama sonrası veya admin)."""
        removed = self._clear(db, subject_key) > 0
        if removed:
            log.info("Lockout reset: subject=%s actor=%s", subject_key, actor)
            record_security_event(db, "lockout_reset", subject_key=subject_key, detail=f"actor={actor}")
        return removed

    def lock_account(
        self,
        db: Session,
        subject_key: str,
        minutes: int,
        reason: str = "Locked by administrator",
        automatic_unlock: bool = False,
    ) -> LockoutInfo:
        now = self.clock.now()
        policy = get_effective_policy(db, subject_key)
        try:
            failed = count_matching(
                db,
                LoginAttempt,
                [LoginAttempt.subject_key == subject_key, LoginAttempt.success == False],  # noqa: E712
                since=window_start(now, policy.window_minutes),
                until=now,
            )
        except SQLAlchemyError as e:
            raise StoreUnavailable() from e
        self._apply_lock(
            db,
            subject_key,
            computed_until=now + timedelta(minutes=minutes),
            failed_attempts=failed,
            reason=reason,
            automatic_unlock=automatic_unlock,
            now=now,
        )
        record_security_event(db, "manual_lock", subject_key=subject_key, detail=reason)
        return self.get_lockout_info(db, subject_key)

    def cleanup_expired_lockouts(self, db: Session) -> int:
        now = self.clock.now()
        try:
            result = db.exec(
                delete(AccountLockout)
                .where(AccountLockout.locked_until < now)
                .where(AccountLockout.automatic_unlock == True)  # noqa: E712
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable() from e
        return result.rowcount or 0
