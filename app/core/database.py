from sqlalchemy import text
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from .config import settings


def _normalized_database_url(raw_url: str) -> str:
    """
    DATABASE_URL normalizasyonu:
    - postgres:// veya postgresql:// ise psycopg3 dialekti ile çalışacak şekilde dönüştür.
    - Diğer tüm durumlarda olduğu gibi bırak (SQLite vs.).
    """
    if not raw_url:
        return "sqlite:///./kalkan.db"
    raw_url = raw_url.strip()
    if raw_url.startswith("postgres://"):
        return "postgresql+psycopg://" + raw_url[len("postgres://") :]
    if raw_url.startswith("postgresql://") and "+psycopg" not in raw_url.split("://", 1)[0]:
        return "postgresql+psycopg://" + raw_url[len("postgresql://") :]
    return raw_url


def _connect_args(url: str, timeout_seconds: float) -> dict:
    """Her store işlemi zaman aşımı ile sınırlı; süresi dolan yazım 'sonucu bilinmiyor' sayılır."""
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": timeout_seconds}
    if url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={int(timeout_seconds * 1000)}"}
    return {}


def build_engine(url: str, timeout_seconds: float | None = None):
    url = _normalized_database_url(url)
    timeout = settings.store_timeout_seconds if timeout_seconds is None else timeout_seconds
    # In-memory SQLite: tek bağlantı kullan ki init_db tabloları tüm isteklerde görünsün (testler için)
    use_static_pool = url.startswith("sqlite") and ":memory:" in url
    return create_engine(
        url,
        connect_args=_connect_args(url, timeout),
        poolclass=StaticPool if use_static_pool else None,
    )


DATABASE_URL = _normalized_database_url(settings.database_url)
engine = build_engine(DATABASE_URL)


def get_db():
    with Session(engine) as session:
        yield session


def init_db(bind=None):
    SQLModel.metadata.create_all(bind or engine)


def ping_db(bind=None) -> bool:
    """Health check: store erişilebilir mi?"""
    with (bind or engine).connect() as conn:
        conn.execute(text("SELECT 1"))
    return True
