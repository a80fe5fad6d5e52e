"""Pytest fixtures: test client (in-memory SQLite), dosya tabanlı SQLite session, sabit saat."""
import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session, SQLModel

# Test ortamı (app import edilmeden önce set edilmeli)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")
# SlowAPI kaba limiti tüm test oturumu boyunca birikir; yüksek tutulur
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "10000")

from app.api.deps import get_clock  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.core.database import build_engine, engine, init_db  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.core.security import ALGORITHM  # noqa: E402
from app.main import app  # noqa: E402

ADMIN_SECRET = os.environ["ADMIN_SECRET"]


def issue_token(claims: dict, expires_minutes: int = 60) -> str:
    """Kimlik sağlayıcının imzaladığı token'ın karşılığı (servis kendisi token üretmez)."""
    payload = {**claims, "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)}
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


class FrozenClock:
    """Elle ilerletilen saat; pencere ve kilit süresi testleri için."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 4, 5, 12, 0, 0))


@pytest.fixture
def db_engine(tmp_path):
    """Ayrı bağlantılar açılabilen dosya SQLite (eşzamanlı yazım testleri için)."""
    e = build_engine(f"sqlite:///{tmp_path / 'kalkan-test.db'}")
    init_db(e)
    yield e
    e.dispose()


@pytest.fixture
def db(db_engine):
    with Session(db_engine) as session:
        yield session


@pytest.fixture
def client(clock):
    """TestClient; her testte temiz tablolar ve sabit saat."""
    SQLModel.metadata.drop_all(engine)
    init_db()
    limiter.reset()
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Kimlik sağlayıcının verdiği token'ı taklit eder: auth_headers("a@b.com", role="admin")."""

    def _headers(subject_key: str, role: str | None = None, expires_minutes: int = 60) -> dict:
        claims = {"sub": subject_key}
        if role:
            claims["role"] = role
        return {"Authorization": f"Bearer {issue_token(claims, expires_minutes)}"}

    return _headers


@pytest.fixture
def admin_secret_headers():
    return {"X-Admin-Secret": ADMIN_SECRET}
