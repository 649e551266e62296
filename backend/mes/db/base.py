"""FORGE MES — Declarative base and shared column helpers."""
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import DeclarativeBase

QTY_PLACES = Decimal("0.0001")
MONEY_PLACES = Decimal("0.01")


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def to_qty(value) -> Decimal:
    """Normalize a quantity (Decimal, float or aggregate result) to 4 places."""
    if value is None:
        value = 0
    return Decimal(str(value)).quantize(QTY_PLACES, rounding=ROUND_HALF_UP)


def to_money(value) -> Decimal:
    if value is None:
        value = 0
    return Decimal(str(value)).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
