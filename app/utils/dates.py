"""
Aritmética de fechas para las frecuencias de los movimientos recurrentes.

Política de desborde: los pasos mensuales/anuales se ajustan al último día
del mes cuando el día no existe (31 ene + 1 mes = 29 feb en bisiesto). Con
``anchor_day`` el paso apunta siempre al día original de la serie, así un
calendario que empieza el 31 vuelve al 31 en cuanto el mes lo permite.
"""

import datetime as dt
from typing import Optional, TypeVar

from dateutil.relativedelta import relativedelta

from app.models.enums import Frequency

D = TypeVar("D", dt.date, dt.datetime)

_DAY_STEPS = {
    Frequency.daily: 1,
    Frequency.weekly: 7,
    Frequency.biweekly: 14,
}

_MONTH_STEPS = {
    Frequency.monthly: 1,
    Frequency.quarterly: 3,
    Frequency.semiannual: 6,
    Frequency.yearly: 12,
}

# Tope de iteraciones al recalcular una serie (diaria durante ~50 años)
MAX_SCHEDULE_STEPS = 20000


def utcnow() -> dt.datetime:
    """Hora actual en UTC, naive (así se guardan las columnas)."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def normalize_datetime(value: dt.date | dt.datetime | str | None) -> Optional[dt.datetime]:
    """Normaliza a datetime naive en UTC."""
    if value is None:
        return None

    if isinstance(value, dt.datetime):
        # Si viene aware, pásalo a UTC y quita tzinfo; si ya es naive, asume UTC
        return value.astimezone(dt.timezone.utc).replace(tzinfo=None) if value.tzinfo else value

    if isinstance(value, dt.date):
        # Solo fecha → úsala a las 12:00 para evitar desbordes por tz
        return dt.datetime.combine(value, dt.time(12, 0, 0))

    if isinstance(value, str):
        s = value.strip().replace("Z", "+00:00")
        if len(s) == 10:
            # "YYYY-MM-DD" se trata igual que un date
            return normalize_datetime(dt.date.fromisoformat(s))
        return normalize_datetime(dt.datetime.fromisoformat(s))

    raise TypeError(f"Unsupported type for date: {type(value)!r}")


def add_months(anchor: D, months: int, anchor_day: Optional[int] = None) -> D:
    day = anchor_day or anchor.day
    # relativedelta con day absoluto recorta al último día del mes destino
    return anchor + relativedelta(months=months, day=day)


def next_occurrence(frequency: Frequency, anchor: D, anchor_day: Optional[int] = None) -> D:
    """
    Siguiente fecha de la serie a partir de la fecha programada anterior.

    Es una función pura: nunca mira el reloj, por eso un lote que corre tarde
    no comprime la cadencia nominal.
    """
    frequency = Frequency(frequency)
    if frequency in _DAY_STEPS:
        return anchor + dt.timedelta(days=_DAY_STEPS[frequency])
    return add_months(anchor, _MONTH_STEPS[frequency], anchor_day)


def first_occurrence_after(
    frequency: Frequency, start: D, after: Optional[D] = None
) -> D:
    """Primera ocurrencia de la serie que empieza en ``start`` posterior a ``after``."""
    if after is None or start > after:
        return start

    current = start
    for _ in range(MAX_SCHEDULE_STEPS):
        current = next_occurrence(frequency, current, anchor_day=start.day)
        if current > after:
            return current
    raise ValueError("La serie no alcanza la fecha indicada")
