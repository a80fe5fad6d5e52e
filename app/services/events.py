"""Güvenlik olayları ve kullanıcı uyarıları. Yazımlar best effort: hata loglanır, karar akışı durmaz."""
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.models import SecurityAlert, SecurityLog

log = logging.getLogger("kalkan.events")


def record_security_event(
    db: Session,
    event: str,
    subject_key: str | None = None,
    ip: str | None = None,
    endpoint: str | None = None,
    detail: str | None = None,
) -> None:
    try:
        db.add(SecurityLog(event=event, subject_key=subject_key, ip=ip, endpoint=endpoint, detail=detail))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("SecurityLog %s write failed: %s", event, e)


def raise_alert(
    db: Session,
    subject_key: str,
    alert_type: str,
    severity: str,
    title: str,
    message: str,
    recommendation: str | None = None,
    now: datetime | None = None,
) -> None:
    alert = SecurityAlert(
        subject_key=subject_key,
        alert_type=alert_type,
        severity=severity,
        title=title,
        message=message,
        recommendation=recommendation,
    )
    if now is not None:
        alert.created_at = now
    try:
        db.add(alert)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("SecurityAlert %s write failed: subject=%s error=%s", alert_type, subject_key, e)


def raise_lockout_alert(
    db: Session,
    subject_key: str,
    failed_attempts: int,
    duration_minutes: int,
    now: datetime | None = None,
) -> None:
    raise_alert(
        db,
        subject_key,
        alert_type="account_locked",
        severity="high",
        title="Hesap geçici olarak kilitlendi",
        message=(
            f"{failed_attempts} başarısız giriş denemesi nedeniyle hesabınız "
            f"{duration_minutes} dakika kilitlendi."
        ),
        recommendation=(
            "Kilit süresinin dolmasını bekleyip tekrar deneyin. "
            "Yetkisiz erişimden şüpheleniyorsanız şifrenizi değiştirin."
        ),
        now=now,
    )


def has_recent_alert(db: Session, subject_key: str, alert_type: str, since: datetime) -> bool:
    """Aynı tipte uyarı since'ten beri üretildiyse tekrar üretilmez (çözülmüş olsa da)."""
    stmt = (
        select(SecurityAlert.id)
        .where(SecurityAlert.subject_key == subject_key)
        .where(SecurityAlert.alert_type == alert_type)
        .where(SecurityAlert.created_at >= since)
    )
    return db.exec(stmt).first() is not None


def list_alerts(db: Session, subject_key: str, include_resolved: bool = False) -> list[SecurityAlert]:
    stmt = select(SecurityAlert).where(SecurityAlert.subject_key == subject_key)
    if not include_resolved:
        stmt = stmt.where(SecurityAlert.resolved == False)  # noqa: E712
    return list(db.exec(stmt.order_by(SecurityAlert.id.desc())).all())
