"""Kimlik sağlayıcının verdiği bearer JWT'lerin doğrulanması (HS256). Bu servis token üretmez."""
from jose import JWTError, jwt

from .config import settings

ALGORITHM = "HS256"
ADMIN_ROLE = "admin"


def decode_access_token(token: str) -> dict | None:
    """İmza veya süre (exp) geçersizse None."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
