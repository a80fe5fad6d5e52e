"""Zaman kaynağı. Tüm tarih alanları naive UTC tutulur; kolonlar açıkça DateTime (timezone=False)."""
import threading
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC; model default_factory'leri ve saat için ortak kaynak."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SystemClock:
    """Duvar saati; önceki döndürdüğü değerden geriye gitmez (NTP düzeltmelerine karşı)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = utcnow()
        with self._lock:
            if self._last is not None and current < self._last:
                current = self._last
            self._last = current
        return current


system_clock = SystemClock()
