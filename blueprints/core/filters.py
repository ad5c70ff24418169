from __future__ import annotations
from datetime import datetime, time
from decimal import Decimal

def fmt_time(value: time | None) -> str | None:
    if value is None:
        return None
    return value.strftime("%H:%M")

def fmt_dt(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(timespec="seconds")

def fmt_money(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return format(Decimal(value), ".2f")

def enum_value(value):
    return getattr(value, "value", value)

def minutes_between(start: time, end: time) -> int:
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
