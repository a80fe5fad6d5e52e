from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env proje kökünde: app/core/config.py -> app/core -> app -> kök
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"


class Settings(BaseSettings):
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./kalkan.db"
    # Veritabanı işlemleri için üst süre (SQLite busy timeout / Postgres statement_timeout)
    store_timeout_seconds: float = 5.0
    environment: str = "development"
    # Admin araçları (cleanup, manuel kilit): X-Admin-Secret header
    admin_secret: str = ""

    # Hesap kilitleme varsayılanları (kullanıcıya özel politika yoksa)
    default_max_failed_attempts: int = 5
    default_lockout_duration_minutes: int = 15
    default_window_minutes: int = 60
    # Kilit kaydı yazımında optimistic retry sayısı
    lockout_max_retries: int = 3
    # Çakışmadan sonra tekrar okumadan önce rastgele bekleme üst sınırı (ms, deneme başına artar)
    lockout_retry_backoff_ms: int = 20
    # Son 30 dakikada bu kadar başarısız deneme "multiple_failures" uyarısı üretir
    suspicious_failure_threshold: int = 3

    # Store tabanlı kayan pencere limitleri (IP + endpoint)
    login_rate_limit_max_requests: int = 10
    login_rate_limit_window_minutes: int = 1
    status_rate_limit_max_requests: int = 30
    status_rate_limit_window_minutes: int = 1

    # SlowAPI: IP başına dakikada max istek (kaba üst sınır)
    rate_limit_per_minute: int = 60
    rate_limit_enabled: bool = True

    # Login denemeleri bu kadar gün sonra cleanup ile silinir
    attempt_retention_days: int = 90

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("admin_secret", "secret_key", mode="before")
    @classmethod
    def strip_secret(cls, v: str | None) -> str:
        """Boşluk/yanlış kopya kaynaklı hataları azaltır."""
        return (v or "").strip()


settings = Settings()
