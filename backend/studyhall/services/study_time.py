"""
Calcul du temps d'étude à partir des événements de présence canoniques.

Machine à deux états (ABSENT / PRESENT) appliquée aux événements d'une journée d'étude,
triés par timestamp (tri stable : à timestamp égal, l'ordre d'insertion est conservé).

Séquences mal formées (deux entrées consécutives, sortie sans entrée) : tolérées, jamais
corrigées. Une ré-entrée écrase l'instant d'entrée mémorisé, une sortie orpheline est ignorée.
Une session encore ouverte compte jusqu'à min(now, fin de journée).
"""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from studyhall.models.attendance import BREAK_END, BREAK_START, CHECK_IN, CHECK_OUT, AttendanceEvent
from studyhall.services.study_clock import study_day_bounds, week_bounds, week_dates

logger = logging.getLogger(__name__)


class PresenceState(str, Enum):
    ABSENT = "absent"
    PRESENT = "present"


class Effect(str, Enum):
    OPEN = "open"        # mémorise l'instant d'entrée
    CLOSE = "close"      # ajoute (événement - entrée) au total
    REOPEN = "reopen"    # déjà présent : l'entrée est écrasée
    IGNORE = "ignore"    # déjà absent : sortie orpheline


TRANSITIONS: Dict[Tuple[PresenceState, str], Tuple[PresenceState, Effect]] = {
    (PresenceState.ABSENT, CHECK_IN): (PresenceState.PRESENT, Effect.OPEN),
    (PresenceState.ABSENT, BREAK_END): (PresenceState.PRESENT, Effect.OPEN),
    (PresenceState.PRESENT, CHECK_OUT): (PresenceState.ABSENT, Effect.CLOSE),
    (PresenceState.PRESENT, BREAK_START): (PresenceState.ABSENT, Effect.CLOSE),
    (PresenceState.PRESENT, CHECK_IN): (PresenceState.PRESENT, Effect.REOPEN),
    (PresenceState.PRESENT, BREAK_END): (PresenceState.PRESENT, Effect.REOPEN),
    (PresenceState.ABSENT, CHECK_OUT): (PresenceState.ABSENT, Effect.IGNORE),
    (PresenceState.ABSENT, BREAK_START): (PresenceState.ABSENT, Effect.IGNORE),
}

# Statut affiché d'après le dernier événement de la journée
STATUS_CHECKED_IN = "checked_in"
STATUS_ON_BREAK = "on_break"
STATUS_CHECKED_OUT = "checked_out"

_STATUS_BY_LAST_EVENT = {
    CHECK_IN: STATUS_CHECKED_IN,
    BREAK_END: STATUS_CHECKED_IN,
    BREAK_START: STATUS_ON_BREAK,
    CHECK_OUT: STATUS_CHECKED_OUT,
}


@dataclass
class StudySession:
    start: datetime
    end: datetime
    is_open: bool = False

    @property
    def duration_seconds(self) -> int:
        return max(0, math.floor((self.end - self.start).total_seconds()))


def _sorted(events: Iterable) -> List:
    return sorted(events, key=lambda e: e.timestamp)


def extract_study_sessions(events: Iterable, day_end: datetime, now: datetime) -> List[StudySession]:
    """Découpe la journée en sessions de présence ; la dernière peut être ouverte."""
    state = PresenceState.ABSENT
    entry: Optional[datetime] = None
    sessions: List[StudySession] = []

    for event in _sorted(events):
        transition = TRANSITIONS.get((state, event.type))
        if transition is None:
            logger.warning("Type d'événement inconnu ignoré : %s", event.type)
            continue
        next_state, effect = transition

        if effect is Effect.OPEN:
            entry = event.timestamp
        elif effect is Effect.REOPEN:
            logger.debug("Entrée écrasée (%s alors que déjà présent) à %s", event.type, event.timestamp)
            entry = event.timestamp
        elif effect is Effect.CLOSE:
            sessions.append(StudySession(start=entry, end=event.timestamp))
            entry = None
        else:
            logger.debug("Sortie orpheline ignorée (%s alors qu'absent) à %s", event.type, event.timestamp)

        state = next_state

    if state is PresenceState.PRESENT:
        end = max(min(now, day_end), entry)
        sessions.append(StudySession(start=entry, end=end, is_open=True))

    return sessions


def reduce_study_seconds(events: Iterable, day_end: datetime, now: datetime) -> int:
    """Total des secondes d'étude d'une journée, arrondi à l'entier inférieur, jamais négatif."""
    total = sum(
        (s.end - s.start for s in extract_study_sessions(events, day_end, now)),
        timedelta(),
    )
    return max(0, math.floor(total.total_seconds()))


def current_status(events: Sequence) -> str:
    if not events:
        return STATUS_CHECKED_OUT
    return _STATUS_BY_LAST_EVENT.get(_sorted(events)[-1].type, STATUS_CHECKED_OUT)


def weekly_study_seconds(events: Iterable, week_start: date, now: datetime) -> int:
    """Somme des réductions journalières sur les 7 journées d'étude de la semaine."""
    events = list(events)
    total = 0
    for day in week_dates(week_start):
        bounds = study_day_bounds(day)
        day_events = [e for e in events if bounds.start <= e.timestamp < bounds.end]
        total += reduce_study_seconds(day_events, bounds.end, now)
    return total


def load_events(
    db: Session,
    student_id: uuid.UUID,
    start: datetime,
    end: datetime,
) -> List[AttendanceEvent]:
    """Événements d'un élève dans [start, end), triés par timestamp puis ordre d'insertion."""
    return db.execute(
        select(AttendanceEvent)
        .where(
            AttendanceEvent.student_id == student_id,
            AttendanceEvent.timestamp >= start,
            AttendanceEvent.timestamp < end,
        )
        .order_by(AttendanceEvent.timestamp, AttendanceEvent.created_at)
    ).scalars().all()


def study_seconds_for_day(
    db: Session,
    student_id: uuid.UUID,
    study_date: date,
    now: Optional[datetime] = None,
) -> int:
    now = now or datetime.now(timezone.utc)
    bounds = study_day_bounds(study_date)
    events = load_events(db, student_id, bounds.start, bounds.end)
    return reduce_study_seconds(events, bounds.end, now)


def study_seconds_for_week(
    db: Session,
    student_id: uuid.UUID,
    week_start: date,
    now: Optional[datetime] = None,
) -> int:
    now = now or datetime.now(timezone.utc)
    bounds = week_bounds(week_start)
    events = load_events(db, student_id, bounds.start, bounds.end)
    return weekly_study_seconds(events, week_start, now)
