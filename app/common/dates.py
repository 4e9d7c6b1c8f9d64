"""
Fechas y horas en la zona horaria configurada de la agrupación
"""
from datetime import date, datetime
from zoneinfo import ZoneInfo

from app.core.config import settings


def local_now() -> datetime:
    """Fecha y hora actual en la zona horaria local."""
    return datetime.now(ZoneInfo(settings.TIMEZONE))


def local_today() -> date:
    """Fecha actual (YYYY-MM-DD) en la zona horaria local."""
    return local_now().date()


def local_time_label(moment: datetime | None = None) -> str:
    """Hora local en formato HH:MM, como se muestra en apertura/cierre de caja."""
    moment = moment or local_now()
    return moment.strftime("%H:%M")
