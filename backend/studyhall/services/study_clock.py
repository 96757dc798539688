"""
Horloge de la journée d'étude.

La salle est ouverte de 07:30 à 01:30 le lendemain (heure locale de l'établissement).
Un instant situé entre 00:00 et 07:30 appartient à la journée d'étude de la veille.

Toutes les fonctions sont pures et indépendantes du fuseau horaire du serveur :
le fuseau de l'établissement (settings.FACILITY_TIMEZONE) est appliqué explicitement
et les bornes sont renvoyées en instants UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import List, NamedTuple
from zoneinfo import ZoneInfo

from studyhall.config import settings

ACCESS_KEY_FORMAT = "%Y%m%d%H%M%S"


class StudyDayBounds(NamedTuple):
    """Intervalle semi-ouvert [start, end) en instants UTC."""
    start: datetime
    end: datetime


def _parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def facility_timezone() -> ZoneInfo:
    return ZoneInfo(settings.FACILITY_TIMEZONE)


def to_facility_time(instant: datetime) -> datetime:
    """Convertit un instant aware en heure locale de l'établissement. Refuse les datetimes naïfs."""
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("Instant sans fuseau horaire : impossible de déterminer la journée d'étude.")
    return instant.astimezone(facility_timezone())


def study_date_of(instant: datetime) -> date:
    """Date de la journée d'étude à laquelle appartient l'instant."""
    local = to_facility_time(instant)
    if local.time() < _parse_hhmm(settings.STUDY_DAY_START):
        return local.date() - timedelta(days=1)
    return local.date()


def study_day_bounds(study_date: date) -> StudyDayBounds:
    """Début (date à 07:30) et fin (lendemain à 01:30) de la journée d'étude, en UTC."""
    tz = facility_timezone()
    start = datetime.combine(study_date, _parse_hhmm(settings.STUDY_DAY_START), tzinfo=tz)
    end = datetime.combine(
        study_date + timedelta(days=1), _parse_hhmm(settings.STUDY_DAY_END), tzinfo=tz
    )
    return StudyDayBounds(start.astimezone(timezone.utc), end.astimezone(timezone.utc))


def week_start_for_date(study_date: date) -> date:
    offset = (study_date.weekday() - settings.WEEK_STARTS_ON) % 7
    return study_date - timedelta(days=offset)


def week_start_of(instant: datetime) -> date:
    """Premier jour (par défaut le dimanche) de la semaine contenant la journée d'étude de l'instant."""
    return week_start_for_date(study_date_of(instant))


def previous_week_start(now: datetime) -> date:
    """
    Premier jour de la dernière semaine dont la septième journée d'étude est terminée.

    Dimanche 02:00 appartient encore à la journée du samedi, mais celle-ci s'est
    fermée à 01:30 : la semaine qui vient de finir est déjà complète.
    """
    week_start = week_start_of(now)
    if week_bounds(week_start).end <= now:
        return week_start
    return week_start - timedelta(days=7)


def week_dates(week_start: date) -> List[date]:
    return [week_start + timedelta(days=i) for i in range(7)]


def week_bounds(week_start: date) -> StudyDayBounds:
    """Du début de la première journée d'étude à la fin de la septième."""
    return StudyDayBounds(
        study_day_bounds(week_start).start,
        study_day_bounds(week_start + timedelta(days=6)).end,
    )


def is_within_study_hours(instant: datetime) -> bool:
    """True si l'instant tombe dans les heures d'ouverture (07:30 ≤ heure locale < 01:30)."""
    local_time = to_facility_time(instant).time()
    return (
        local_time >= _parse_hhmm(settings.STUDY_DAY_START)
        or local_time < _parse_hhmm(settings.STUDY_DAY_END)
    )


def format_access_key(instant: datetime) -> str:
    """Instant → clé YYYYMMDDHHmmss en heure locale, format des horodatages du contrôle d'accès."""
    return to_facility_time(instant).strftime(ACCESS_KEY_FORMAT)


def parse_access_key(e_date: str, e_time: str) -> datetime:
    """Date YYYYMMDD + heure HHmmss (heure locale) → instant aware."""
    naive = datetime.strptime(e_date + e_time, ACCESS_KEY_FORMAT)
    return naive.replace(tzinfo=facility_timezone())
