"""IP bazlı kaba rate limiting (SlowAPI); proxy (X-Forwarded-For) destekli."""
from fastapi import Request

from slowapi import Limiter

from .config import settings


def get_client_ip(request: Request) -> str:
    """Proxy arkasında gerçek istemci IP."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


limiter = Limiter(key_func=get_client_ip, enabled=settings.rate_limit_enabled)
SECURITY_RATE_LIMIT = f"{settings.rate_limit_per_minute}/minute"
