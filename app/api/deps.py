import hmac
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.clock import system_clock
from app.core.config import settings
from app.core.errors import Unauthorized
from app.core.security import ADMIN_ROLE, decode_access_token
from app.schemas import normalize_subject
from app.services.ledger import AttemptLedger
from app.services.lockout import LockoutEngine
from app.services.rate_limiter import RateLimiter

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    subject_key: str
    is_admin: bool = False


def get_clock():
    """Testlerde dependency_overrides ile sabit saat verilir."""
    return system_clock


def get_ledger(clock=Depends(get_clock)) -> AttemptLedger:
    return AttemptLedger(clock=clock)


def get_lockout_engine(ledger: AttemptLedger = Depends(get_ledger), clock=Depends(get_clock)) -> LockoutEngine:
    return LockoutEngine(ledger=ledger, clock=clock)


def get_rate_limiter(clock=Depends(get_clock)) -> RateLimiter:
    return RateLimiter(clock=clock)


def admin_secret_matches(provided: str | None) -> bool:
    """Timing-safe karşılaştırma; ADMIN_SECRET tanımlı değilse hiçbir değer geçmez."""
    expected = (settings.admin_secret or "").strip()
    if not expected:
        return False
    return hmac.compare_digest((provided or "").encode("utf-8"), expected.encode("utf-8"))


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Giriş yapmanız gerekiyor.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Geçersiz veya süresi dolmuş token.",
        )
    return Identity(subject_key=normalize_subject(payload["sub"]), is_admin=payload.get("role") == ADMIN_ROLE)


def get_optional_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity | None:
    if not credentials:
        return None
    return get_current_identity(credentials)


def require_admin(
    x_admin_secret: str | None = Header(None, alias="X-Admin-Secret"),
    identity: Identity | None = Depends(get_optional_identity),
) -> Identity:
    """Admin araçları: admin rolü olan token veya X-Admin-Secret."""
    if identity is not None and identity.is_admin:
        return identity
    if admin_secret_matches(x_admin_secret):
        return Identity(subject_key="admin-secret", is_admin=True)
    if identity is None and not x_admin_secret:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Giriş yapmanız gerekiyor.")
    raise Unauthorized()
