from datetime import datetime, timedelta
from typing import Optional, Tuple


def start_of_day(value: Optional[datetime] = None) -> datetime:
    """Normaliza una fecha (o `date`) a las 00:00 del mismo día. Sin valor usa hoy."""
    if value is None:
        value = datetime.now()
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    return value.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)


def day_range(value: datetime) -> Tuple[datetime, datetime]:
    """[inicio del día, inicio del día siguiente)"""
    start = start_of_day(value)
    return start, start + timedelta(days=1)


def month_start(year: int, month_index: int) -> datetime:
    """Primer día del mes. `month_index` es base 0 y puede desbordar (12 = enero siguiente)."""
    year += month_index // 12
    return datetime(year, month_index % 12 + 1, 1)


def month_range(year: int, month_index: int) -> Tuple[datetime, datetime]:
    return month_start(year, month_index), month_start(year, month_index + 1)


def month_range_of(value: datetime) -> Tuple[datetime, datetime]:
    return month_range(value.year, value.month - 1)


def previous_month_range(value: datetime) -> Tuple[datetime, datetime]:
    return month_range(value.year, value.month - 2)


def same_month(a: datetime, b: datetime) -> bool:
    return (a.year, a.month) == (b.year, b.month)


def add_one_month(value: datetime) -> datetime:
    """Misma hora un mes después; el día se recorta al último día del mes destino."""
    first_next = month_start(value.year, value.month)
    last_day = (month_start(value.year, value.month + 1) - timedelta(days=1)).day
    return value.replace(year=first_next.year, month=first_next.month, day=min(value.day, last_day))


MONTH_NAMES = [
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
]


def month_name(month_index: int) -> str:
    return MONTH_NAMES[month_index % 12]
