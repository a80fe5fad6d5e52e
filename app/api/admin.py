"""Admin bakım uçları: süresi dolan kilit temizliği, eski kayıt silme, manuel kilit."""
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.api.deps import Identity, get_clock, get_ledger, get_lockout_engine, get_rate_limiter, require_admin
from app.core.config import settings
from app.core.database import get_db
from app.schemas import CleanupResponse, LockoutStatusResponse, ManualLockRequest, normalize_subject
from app.services.ledger import AttemptLedger
from app.services.lockout import LockoutEngine
from app.services.rate_limiter import RateLimiter

log = logging.getLogger("kalkan.admin")

router = APIRouter(prefix="/admin/security", tags=["admin-security"])

# Rate limit pencereleri kısa; bundan eski kayıtlar hiçbir kararda kullanılmaz
RATE_LIMIT_HIT_TTL_MINUTES = 60


@router.post("/cleanup", response_model=CleanupResponse)
def cleanup(
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
    engine: LockoutEngine = Depends(get_lockout_engine),
    ledger: AttemptLedger = Depends(get_ledger),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    clock=Depends(get_clock),
):
    """Depolama temizliği; kilit doğruluğu buna bağlı değildir."""
    now = clock.now()
    expired = engine.cleanup_expired_lockouts(db)
    hits = rate_limiter.purge_before(db, now - timedelta(minutes=RATE_LIMIT_HIT_TTL_MINUTES))
    purged = ledger.purge_older_than(db, now - timedelta(days=settings.attempt_retention_days))
    log.info("Security cleanup by %s: lockouts=%d hits=%d attempts=%d", admin.subject_key, expired, hits, purged)
    return CleanupResponse(
        expired_lockouts_removed=expired,
        rate_limit_hits_removed=hits,
        attempts_purged=purged,
    )


@router.post("/lock", response_model=LockoutStatusResponse)
def manual_lock(
    body: ManualLockRequest,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
    engine: LockoutEngine = Depends(get_lockout_engine),
):
    subject_key = normalize_subject(body.subject_key)
    info = engine.lock_account(
        db,
        subject_key,
        minutes=body.minutes,
        reason=body.reason,
        automatic_unlock=body.automatic_unlock,
    )
    log.warning("Manual lock: subject=%s minutes=%d by=%s", subject_key, body.minutes, admin.subject_key)
    return LockoutStatusResponse(
        is_locked=info.is_locked,
        locked_until=info.locked_until,
        failed_attempts=info.failed_attempts,
        minutes_remaining=info.minutes_remaining,
        requires_reset=info.requires_reset,
    )
