"""Hesap başına güvenlik politikası; kayıt yoksa settings varsayılanları."""
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.core.clock import system_clock
from app.core.config import settings
from app.core.errors import StoreUnavailable
from app.models import SecurityPolicy


@dataclass(frozen=True)
class EffectivePolicy:
    max_failed_attempts: int
    lockout_duration_minutes: int
    window_minutes: int


def default_policy() -> EffectivePolicy:
    return EffectivePolicy(
        max_failed_attempts=settings.default_max_failed_attempts,
        lockout_duration_minutes=settings.default_lockout_duration_minutes,
        window_minutes=settings.default_window_minutes,
    )


def get_effective_policy(db: Session, subject_key: str) -> EffectivePolicy:
    """Tek karar boyunca değişmeyen politika anlık görüntüsü."""
    try:
        row = db.exec(select(SecurityPolicy).where(SecurityPolicy.subject_key == subject_key)).first()
    except SQLAlchemyError as e:
        raise StoreUnavailable() from e
    if row is None:
        return default_policy()
    return EffectivePolicy(
        max_failed_attempts=row.max_failed_attempts,
        lockout_duration_minutes=row.lockout_duration_minutes,
        window_minutes=row.window_minutes,
    )


def update_policy(
    db: Session,
    subject_key: str,
    max_failed_attempts: int | None = None,
    lockout_duration_minutes: int | None = None,
    window_minutes: int | None = None,
    clock=system_clock,
) -> EffectivePolicy:
    current = get_effective_policy(db, subject_key)
    values = {
        "max_failed_attempts": max_failed_attempts if max_failed_attempts is not None else current.max_failed_attempts,
        "lockout_duration_minutes": (
            lockout_duration_minutes if lockout_duration_minutes is not None else current.lockout_duration_minutes
        ),
        "window_minutes": window_minutes if window_minutes is not None else current.window_minutes,
    }
    try:
        row = db.exec(select(SecurityPolicy).where(SecurityPolicy.subject_key == subject_key)).first()
        if row is None:
            row = SecurityPolicy(subject_key=subject_key, **values)
        else:
            for name, value in values.items():
                setattr(row, name, value)
        row.updated_at = clock.now()
        db.add(row)
        db.commit()
    except IntegrityError:
        # Aynı anda ilk kayıt: diğer yazım kazandı, üzerine uygula
        db.rollback()
        row = db.exec(select(SecurityPolicy).where(SecurityPolicy.subject_key == subject_key)).one()
        for name, value in values.items():
            setattr(row, name, value)
        row.updated_at = clock.now()
        db.add(row)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreUnavailable() from e
    return EffectivePolicy(**values)
