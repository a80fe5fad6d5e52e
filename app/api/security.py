"""Mobil istemcinin çağırdığı güvenlik uçları: deneme kaydı, kilit durumu, reset."""
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func
from sqlmodel import Session, select

from app.api.deps import (
    Identity,
    get_clock,
    get_current_identity,
    get_ledger,
    get_lockout_engine,
    get_rate_limiter,
)
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import Unauthorized
from app.core.rate_limit import SECURITY_RATE_LIMIT, get_client_ip, limiter
from app.models import LoginAttempt, SecurityAlert, UserDevice
from app.schemas import (
    DeviceItem,
    LockoutDecisionResponse,
    LockoutStatusResponse,
    LoginAttemptItem,
    LoginAttemptRequest,
    ResetLockoutRequest,
    ResetLockoutResponse,
    SecurityAlertItem,
    SecurityPolicyResponse,
    SecurityPolicyUpdate,
    SecurityReportResponse,
    TrustDeviceRequest,
    normalize_subject,
)
from app.services.devices import list_devices, trust_device
from app.services.events import list_alerts, record_security_event
from app.services.ledger import AttemptLedger, AttemptMetadata
from app.services.lockout import LockoutEngine, LockoutInfo
from app.services.policy import get_effective_policy, update_policy
from app.services.rate_limiter import RateLimiter

log = logging.getLogger("kalkan.api")

router = APIRouter(prefix="/security", tags=["security"])


def _admit(
    request: Request,
    db: Session,
    rate_limiter: RateLimiter,
    endpoint: str,
    max_requests: int,
    window_minutes: int,
) -> str:
    """IP + endpoint kayan pencere kontrolü; aşılırsa 429. İstemci IP'sini döner."""
    ip = get_client_ip(request)
    if not rate_limiter.allow(db, ip, endpoint, ip, max_requests, window_minutes):
        record_security_event(db, "rate_limit", ip=ip, endpoint=request.url.path, detail=f"endpoint={endpoint}")
        raise HTTPException(status_code=429, detail="Çok fazla istek. Lütfen biraz bekleyip tekrar deneyin.")
    return ip


def _status_response(info: LockoutInfo, show_failures: bool = True) -> LockoutStatusResponse:
    return LockoutStatusResponse(
        is_locked=info.is_locked,
        locked_until=info.locked_until,
        failed_attempts=info.failed_attempts if show_failures else 0,
        minutes_remaining=info.minutes_remaining,
        requires_reset=info.requires_reset,
    )


@router.post("/login-attempts", response_model=LockoutDecisionResponse)
@limiter.limit(SECURITY_RATE_LIMIT)
def record_login_attempt(
    request: Request,
    body: LoginAttemptRequest,
    db: Session = Depends(get_db),
    engine: LockoutEngine = Depends(get_lockout_engine),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Giriş öncesi çağrılır (kimlik doğrulama gerekmez)."""
    subject_key = normalize_subject(body.subject_key)
    ip = _admit(
        request,
        db,
        rate_limiter,
        "login",
        settings.login_rate_limit_max_requests,
        settings.login_rate_limit_window_minutes,
    )
    metadata = AttemptMetadata(
        device_fingerprint=body.device_fingerprint,
        device_info=body.device_info,
        location_info=body.location_info,
        ip_address=body.ip_address or ip,
        user_agent=body.user_agent or request.headers.get("user-agent"),
        failure_reason=body.failure_reason,
    )
    decision = engine.record_attempt_and_evaluate(db, subject_key, body.success, metadata)
    return LockoutDecisionResponse(
        should_lockout=decision.should_lockout,
        lockout_duration_minutes=decision.lockout_duration_minutes,
        failed_attempts_count=decision.failed_attempts_count,
    )


@router.get("/lockout-status", response_model=LockoutStatusResponse)
@limiter.limit(SECURITY_RATE_LIMIT)
def get_lockout_status(
    request: Request,
    subject_key: str = Query(..., alias="subjectKey"),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    engine: LockoutEngine = Depends(get_lockout_engine),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    """İstemci "N dakika sonra tekrar deneyin" mesajını yalnızca buradan üretir.

    Geçerli token gerekir. Başarısız deneme sayısı yalnızca hesap sahibine ve admin'e gösterilir.
    """
    key = normalize_subject(subject_key)
    _admit(
        request,
        db,
        rate_limiter,
        "lockout_status",
        settings.status_rate_limit_max_requests,
        settings.status_rate_limit_window_minutes,
    )
    owner_or_admin = identity.is_admin or identity.subject_key == key
    return _status_response(engine.get_lockout_info(db, key), show_failures=owner_or_admin)


@router.post("/lockout/reset", response_model=ResetLockoutResponse)
@limiter.limit(SECURITY_RATE_LIMIT)
def reset_lockout(
    request: Request,
    body: ResetLockoutRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    engine: LockoutEngine = Depends(get_lockout_engine),
):
    """Hesap sahibi (örn. şifre sıfırlama sonrası) veya admin kilidi kaldırır."""
    subject_key = normalize_subject(body.subject_key)
    if not identity.is_admin and identity.subject_key != subject_key:
        raise Unauthorized()
    engine.reset_lockout(db, subject_key, actor=identity.subject_key)
    return ResetLockoutResponse(success=True)


@router.get("/policy", response_model=SecurityPolicyResponse)
def get_policy(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    policy = get_effective_policy(db, identity.subject_key)
    return SecurityPolicyResponse(
        max_failed_attempts=policy.max_failed_attempts,
        lockout_duration_minutes=policy.lockout_duration_minutes,
        window_minutes=policy.window_minutes,
    )


@router.put("/policy", response_model=SecurityPolicyResponse)
def put_policy(
    body: SecurityPolicyUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Politika kararlar arasında değişir; süren bir değerlendirmeyi etkilemez."""
    policy = update_policy(
        db,
        identity.subject_key,
        max_failed_attempts=body.max_failed_attempts,
        lockout_duration_minutes=body.lockout_duration_minutes,
        window_minutes=body.window_minutes,
        clock=clock,
    )
    log.info("Security policy updated: subject=%s policy=%s", identity.subject_key, policy)
    return SecurityPolicyResponse(
        max_failed_attempts=policy.max_failed_attempts,
        lockout_duration_minutes=policy.lockout_duration_minutes,
        window_minutes=policy.window_minutes,
    )


@router.get("/attempts", response_model=list[LoginAttemptItem])
def login_history(
    days: int = Query(30, ge=1, le=365),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    ledger: AttemptLedger = Depends(get_ledger),
):
    return [
        LoginAttemptItem(
            id=a.id or 0,
            created_at=a.created_at,
            success=a.success,
            failure_reason=a.failure_reason,
            device_fingerprint=a.device_fingerprint,
            ip_address=a.ip_address,
            user_agent=a.user_agent,
        )
        for a in ledger.history(db, identity.subject_key, days)
    ]


def _alert_item(a: SecurityAlert) -> SecurityAlertItem:
    return SecurityAlertItem(
        id=a.id or 0,
        alert_type=a.alert_type,
        severity=a.severity,
        title=a.title,
        message=a.message,
        recommendation=a.recommendation,
        resolved=a.resolved,
        created_at=a.created_at,
    )


@router.get("/alerts", response_model=list[SecurityAlertItem])
def get_alerts(
    include_resolved: bool = Query(False, alias="includeResolved"),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return [_alert_item(a) for a in list_alerts(db, identity.subject_key, include_resolved)]


@router.post("/alerts/{alert_id}/resolve", response_model=SecurityAlertItem)
def resolve_alert(
    alert_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    alert = db.get(SecurityAlert, alert_id)
    if not alert or alert.subject_key != identity.subject_key:
        raise HTTPException(status_code=404, detail="Uyarı bulunamadı.")
    if not alert.resolved:
        alert.resolved = True
        alert.resolved_at = clock.now()
        db.add(alert)
        db.commit()
        db.refresh(alert)
    return _alert_item(alert)


@router.get("/report", response_model=SecurityReportResponse)
def security_report(
    days: int = Query(30, ge=1, le=365),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    engine: LockoutEngine = Depends(get_lockout_engine),
    clock=Depends(get_clock),
):
    """Son N günün özeti: deneme sayıları, cihazlar, mevcut kilit, açık uyarılar."""
    since = clock.now() - timedelta(days=days)
    base = (LoginAttempt.subject_key == identity.subject_key, LoginAttempt.created_at >= since)
    total = db.exec(select(func.count()).select_from(LoginAttempt).where(*base)).one()
    failed = db.exec(
        select(func.count()).select_from(LoginAttempt).where(*base).where(LoginAttempt.success == False)  # noqa: E712
    ).one()
    devices = db.exec(
        select(func.count(func.distinct(LoginAttempt.device_fingerprint))).select_from(LoginAttempt).where(*base)
    ).one()
    unresolved = len(list_alerts(db, identity.subject_key))
    return SecurityReportResponse(
        days=days,
        total_attempts=total,
        failed_attempts=failed,
        successful_attempts=total - failed,
        unique_devices=devices,
        unresolved_alerts=unresolved,
        lockout=_status_response(engine.get_lockout_info(db, identity.subject_key)),
    )


def _device_item(d: UserDevice) -> DeviceItem:
    return DeviceItem(
        device_fingerprint=d.device_fingerprint,
        device_name=d.device_name,
        device_type=d.device_type,
        os_name=d.os_name,
        os_version=d.os_version,
        app_version=d.app_version,
        model_name=d.model_name,
        brand=d.brand,
        trusted=d.trusted,
        first_seen=d.first_seen,
        last_seen=d.last_seen,
    )


@router.get("/devices", response_model=list[DeviceItem])
def get_devices(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    """Başarılı girişlerde kaydedilen cihazlar, son görülen önce."""
    return [_device_item(d) for d in list_devices(db, identity.subject_key)]


@router.post("/devices/trust", response_model=DeviceItem)
def trust_registered_device(
    body: TrustDeviceRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    device = trust_device(db, identity.subject_key, body.device_fingerprint)
    if device is None:
        raise HTTPException(status_code=404, detail="Cihaz bulunamadı.")
    return _device_item(device)
