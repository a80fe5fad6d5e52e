"""Cihaz kaydı: başarılı girişte upsert, kullanıcı güvenilir olarak işaretler."""
import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.core.errors import StoreUnavailable
from app.models import UserDevice

log = logging.getLogger("kalkan.devices")

# İstemcinin gönderdiği device_info anahtarları (camelCase) -> kolon
_DEVICE_FIELDS = (
    ("device_name", "name"),
    ("device_type", "type"),
    ("os_name", "osName"),
    ("os_version", "osVersion"),
    ("app_version", "appVersion"),
    ("model_name", "modelName"),
    ("brand", "brand"),
)


def _find(db: Session, subject_key: str, fingerprint: str) -> UserDevice | None:
    stmt = (
        select(UserDevice)
        .where(UserDevice.subject_key == subject_key)
        .where(UserDevice.device_fingerprint == fingerprint)
    )
    return db.exec(stmt).first()


def _apply_info(row: UserDevice, device_info: dict | None) -> None:
    info = device_info or {}
    for attr, key in _DEVICE_FIELDS:
        value = info.get(key, info.get(attr))
        if value is not None:
            setattr(row, attr, str(value)[:255])


def count_devices(db: Session, subject_key: str) -> int:
    stmt = select(func.count()).select_from(UserDevice).where(UserDevice.subject_key == subject_key)
    return db.exec(stmt).one()


def register_device(
    db: Session,
    subject_key: str,
    fingerprint: str,
    device_info: dict | None,
    now: datetime,
) -> tuple[UserDevice, bool]:
    """Cihazı ekler veya last_seen'i günceller. Dönen: (satır, yeni mi). trusted korunur.

    SQLAlchemyError çağırana bırakılır.
    """
    row = _find(db, subject_key, fingerprint)
    is_new = row is None
    if row is None:
        row = UserDevice(subject_key=subject_key, device_fingerprint=fingerprint, first_seen=now)
    _apply_info(row, device_info)
    row.last_seen = now
    try:
        db.add(row)
        db.commit()
    except IntegrityError:
        # Aynı cihaz paralel bir girişte eklendi
        db.rollback()
        row = _find(db, subject_key, fingerprint)
        if row is None:
            raise
        is_new = False
        _apply_info(row, device_info)
        row.last_seen = now
        db.add(row)
        db.commit()
    db.refresh(row)
    return row, is_new


def list_devices(db: Session, subject_key: str) -> list[UserDevice]:
    stmt = (
        select(UserDevice)
        .where(UserDevice.subject_key == subject_key)
        .order_by(UserDevice.last_seen.desc(), UserDevice.id.desc())
    )
    try:
        return list(db.exec(stmt).all())
    except SQLAlchemyError as e:
        raise StoreUnavailable() from e


def trust_device(db: Session, subject_key: str, fingerprint: str) -> UserDevice | None:
    """Kayıtlı değilse None."""
    try:
        row = _find(db, subject_key, fingerprint)
        if row is None:
            return None
        if not row.trusted:
            row.trusted = True
            db.add(row)
            db.commit()
            db.refresh(row)
            log.info("Device trusted: subject=%s fingerprint=%s", subject_key, fingerprint)
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreUnavailable() from e
    return row
