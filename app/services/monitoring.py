"""Şüpheli aktivite tespiti: art arda başarısızlık, hızlı ardışık deneme, yeni cihaz.

Kilit kararından bağımsızdır ve best effort çalışır; hata loglanır, karar dönüşü etkilenmez.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.config import settings
from app.models import LoginAttempt
from app.services.devices import count_devices, register_device
from app.services.events import has_recent_alert, raise_alert

log = logging.getLogger("kalkan.monitoring")

SUSPICIOUS_WINDOW_MINUTES = 30
RAPID_MIN_ATTEMPTS = 3
RAPID_AVG_GAP_SECONDS = 30


def _recent_failure_times(db: Session, subject_key: str, since: datetime, until: datetime) -> list[datetime]:
    stmt = (
        select(LoginAttempt.created_at)
        .where(LoginAttempt.subject_key == subject_key)
        .where(LoginAttempt.success == False)  # noqa: E712
        .where(LoginAttempt.created_at >= since)
        .where(LoginAttempt.created_at <= until)
        .order_by(LoginAttempt.created_at)
    )
    return list(db.exec(stmt).all())


def check_failed_attempt(db: Session, subject_key: str, now: datetime) -> list[str]:
    """Son 30 dakikanın başarısız denemelerine bakar; üretilen uyarı tiplerini döner."""
    raised: list[str] = []
    since = now - timedelta(minutes=SUSPICIOUS_WINDOW_MINUTES)
    try:
        stamps = _recent_failure_times(db, subject_key, since, now)

        if len(stamps) >= settings.suspicious_failure_threshold and not has_recent_alert(
            db, subject_key, "multiple_failures", since
        ):
            raise_alert(
                db,
                subject_key,
                alert_type="multiple_failures",
                severity="medium",
                title="Art arda başarısız giriş denemeleri",
                message=f"Son {SUSPICIOUS_WINDOW_MINUTES} dakikada {len(stamps)} başarısız giriş denemesi yapıldı.",
                recommendation=(
                    "Bu siz değilseniz şifrenizi hemen değiştirin. "
                    "Sizseniz şifrenizi kontrol edip tekrar deneyin."
                ),
                now=now,
            )
            raised.append("multiple_failures")

        if len(stamps) >= RAPID_MIN_ATTEMPTS:
            avg_gap = (stamps[-1] - stamps[0]).total_seconds() / (len(stamps) - 1)
            if avg_gap < RAPID_AVG_GAP_SECONDS and not has_recent_alert(db, subject_key, "suspicious_login", since):
                raise_alert(
                    db,
                    subject_key,
                    alert_type="suspicious_login",
                    severity="high",
                    title="Şüpheli giriş aktivitesi",
                    message=(
                        f"{len(stamps)} başarısız deneme ortalama {avg_gap:.0f} saniye arayla yapıldı; "
                        "otomatik deneme olabilir."
                    ),
                    recommendation="Hesap hareketlerinizi inceleyin ve güçlü bir şifre kullanın.",
                    now=now,
                )
                raised.append("suspicious_login")
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("Suspicious activity check failed: subject=%s error=%s", subject_key, e)
    if raised:
        log.info("Suspicious activity: subject=%s alerts=%s", subject_key, raised)
    return raised


def check_successful_attempt(
    db: Session,
    subject_key: str,
    fingerprint: str | None,
    device_info: dict | None,
    now: datetime,
) -> list[str]:
    """Cihazı kaydeder; daha önce cihazı olan hesapta yeni cihaz görülürse uyarı üretir."""
    if not fingerprint:
        return []
    raised: list[str] = []
    try:
        known = count_devices(db, subject_key)
        device, is_new = register_device(db, subject_key, fingerprint, device_info, now)
        if is_new and known > 0:
            name = device.device_name or "Bilinmeyen cihaz"
            raise_alert(
                db,
                subject_key,
                alert_type="new_device",
                severity="medium",
                title="Yeni cihazdan giriş",
                message=f"Hesabınıza yeni bir cihazdan giriş yapıldı: {name}.",
                recommendation=(
                    "Bu cihaz sizinse güvenilir olarak işaretleyebilirsiniz. "
                    "Değilse şifrenizi hemen değiştirin."
                ),
                now=now,
            )
            raised.append("new_device")
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("Device registration failed: subject=%s error=%s", subject_key, e)
    return raised
