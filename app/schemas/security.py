"""İstemci sözleşmesi: JSON alanları camelCase, girişte snake_case de kabul edilir."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.core.errors import InvalidSubject

MAX_SUBJECT_LENGTH = 320


def normalize_subject(raw: str | None) -> str:
    """Hesap anahtarı: trim + küçük harf. Boş, çok uzun veya boşluk/kontrol karakterli ise InvalidSubject."""
    key = (raw or "").strip().lower()
    if not key or len(key) > MAX_SUBJECT_LENGTH:
        raise InvalidSubject()
    if any(ch.isspace() or not ch.isprintable() for ch in key):
        raise InvalidSubject()
    return key


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginAttemptRequest(CamelModel):
    subject_key: str
    success: bool
    device_fingerprint: str | None = None
    device_info: dict | None = None
    location_info: dict | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    failure_reason: str | None = None


class LockoutDecisionResponse(CamelModel):
    should_lockout: bool
    lockout_duration_minutes: int
    failed_attempts_count: int


class LockoutStatusResponse(CamelModel):
    is_locked: bool
    locked_until: datetime | None = None
    failed_attempts: int
    minutes_remaining: int
    requires_reset: bool = False


class ResetLockoutRequest(CamelModel):
    subject_key: str


class ResetLockoutResponse(CamelModel):
    success: bool


class SecurityPolicyResponse(CamelModel):
    max_failed_attempts: int
    lockout_duration_minutes: int
    window_minutes: int


class SecurityPolicyUpdate(CamelModel):
    max_failed_attempts: int | None = Field(default=None, ge=1, le=100)
    lockout_duration_minutes: int | None = Field(default=None, ge=1, le=1440)
    window_minutes: int | None = Field(default=None, ge=1, le=1440)


class LoginAttemptItem(CamelModel):
    id: int
    created_at: datetime
    success: bool
    failure_reason: str | None = None
    device_fingerprint: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class SecurityAlertItem(CamelModel):
    id: int
    alert_type: str
    severity: str
    title: str
    message: str
    recommendation: str | None = None
    resolved: bool
    created_at: datetime


class SecurityReportResponse(CamelModel):
    days: int
    total_attempts: int
    failed_attempts: int
    successful_attempts: int
    unique_devices: int
    unresolved_alerts: int
    lockout: LockoutStatusResponse


class ManualLockRequest(CamelModel):
    subject_key: str
    minutes: int = Field(ge=1, le=60 * 24 * 30)
    reason: str = "Locked by administrator"
    automatic_unlock: bool = False

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        return (v or "").strip()[:255] or "Locked by administrator"


class CleanupResponse(CamelModel):
    expired_lockouts_removed: int
    rate_limit_hits_removed: int
    attempts_purged: int


class DeviceItem(CamelModel):
    device_fingerprint: str
    device_name: str | None = None
    device_type: str | None = None
    os_name: str | None = None
    os_version: str | None = None
    app_version: str | None = None
    model_name: str | None = None
    brand: str | None = None
    trusted: bool
    first_seen: datetime
    last_seen: datetime


class TrustDeviceRequest(CamelModel):
    device_fingerprint: str = Field(min_length=1, max_length=255)
