"""Kayan pencere sayacı: lockout ve rate limit ortak primitive'i.

Pencere her değerlendirmede yeniden hesaplanır (artımlı sayaç tutulmaz).
Referans zaman, değerlendirilen olayın store'daki damgasıdır; okuma anındaki
duvar saati kullanılmaz ki farklı süreçler arasında saat kayması sayımı bozmasın.
"""
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select


def window_start(reference: datetime, window_minutes: int) -> datetime:
    return reference - timedelta(minutes=window_minutes)


def count_matching(
    db: Session,
    model: type[SQLModel],
    criteria: list,
    since: datetime,
    until: datetime | None = None,
) -> int:
    """`model` tablosunda kriterlere uyan ve since <= created_at (<= until) olan satır sayısı."""
    stmt = (
        select(func.count())
        .select_from(model)
        .where(*criteria)
        .where(model.created_at >= since)
    )
    if until is not None:
        stmt = stmt.where(model.created_at <= until)
    return int(db.exec(stmt).one() or 0)
