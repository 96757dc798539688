"""
Service métier pour la saisie manuelle des présences (application élève ou admin).

Transitions autorisées selon le statut courant de la journée d'étude :
- check_in    : seulement si sorti
- check_out   : si présent ou en pause
- break_start : si présent
- break_end   : si en pause ; une pause plus longue que BREAK_GRACE_MINUTES est convertie
                en sortie (à l'heure du début de pause) + nouvelle entrée (maintenant)

Une sortie clôture la session de matière en cours.
"""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from studyhall.config import settings
from studyhall.models.attendance import (
    ATTENDANCE_TYPES,
    BREAK_END,
    BREAK_START,
    CHECK_IN,
    CHECK_OUT,
    SOURCE_MANUAL,
    AttendanceEvent,
)
from studyhall.models.student import Student
from studyhall.models.subject import StudySubject
from studyhall.schemas.attendance import AttendanceEventResponse, DaySummaryResponse
from studyhall.services.study_clock import is_within_study_hours, study_date_of, study_day_bounds
from studyhall.services.study_time import (
    STATUS_CHECKED_IN,
    STATUS_CHECKED_OUT,
    STATUS_ON_BREAK,
    current_status,
    extract_study_sessions,
    load_events,
    reduce_study_seconds,
)

logger = logging.getLogger(__name__)

ALLOWED_FROM_STATUS = {
    CHECK_IN: (STATUS_CHECKED_OUT,),
    CHECK_OUT: (STATUS_CHECKED_IN, STATUS_ON_BREAK),
    BREAK_START: (STATUS_CHECKED_IN,),
    BREAK_END: (STATUS_ON_BREAK,),
}


def _get_student(db: Session, student_id: uuid.UUID) -> Student:
    student = db.execute(select(Student).where(Student.id == student_id)).scalar()
    if student is None:
        raise ValueError(f"Élève {student_id} introuvable.")
    return student


def _close_current_subject(db: Session, student_id: uuid.UUID, ended_at: datetime) -> None:
    db.execute(
        update(StudySubject)
        .where(StudySubject.student_id == student_id, StudySubject.is_current.is_(True))
        .values(is_current=False, ended_at=ended_at)
    )


def _manual_event(student_id: uuid.UUID, event_type: str, timestamp: datetime) -> AttendanceEvent:
    return AttendanceEvent(
        id=uuid.uuid4(),
        student_id=student_id,
        type=event_type,
        timestamp=timestamp,
        source=SOURCE_MANUAL,
    )


def record_manual_event(
    db: Session,
    student_id: uuid.UUID,
    event_type: str,
    now: Optional[datetime] = None,
) -> List[AttendanceEvent]:
    """
    Enregistre un événement manuel horodaté à `now` et retourne les événements créés.

    Lève ValueError si l'élève est introuvable, si le type est inconnu, si l'entrée est
    hors des heures d'ouverture ou si la transition est incompatible avec le statut courant.
    """
    if event_type not in ATTENDANCE_TYPES:
        raise ValueError(f"Type de présence invalide : {event_type}")
    now = now or datetime.now(timezone.utc)
    _get_student(db, student_id)

    if event_type == CHECK_IN and not is_within_study_hours(now):
        raise ValueError("Entrée impossible en dehors des heures d'ouverture (07:30 – 01:30).")

    bounds = study_day_bounds(study_date_of(now))
    events = load_events(db, student_id, bounds.start, bounds.end)
    status = current_status(events)
    if status not in ALLOWED_FROM_STATUS[event_type]:
        raise ValueError(f"Action {event_type} impossible : statut actuel {status}.")

    created: List[AttendanceEvent] = []

    if event_type == BREAK_END:
        break_start = next((e for e in reversed(events) if e.type == BREAK_START), None)
        grace = timedelta(minutes=settings.BREAK_GRACE_MINUTES)
        if break_start is not None and now - break_start.timestamp > grace:
            # Pause trop longue : sortie au début de la pause puis ré-entrée
            created = [
                _manual_event(student_id, CHECK_OUT, break_start.timestamp),
                _manual_event(student_id, CHECK_IN, now),
            ]
            _close_current_subject(db, student_id, break_start.timestamp)
            logger.info(
                "Pause de l'élève %s au-delà de %d min : convertie en sortie + entrée",
                student_id, settings.BREAK_GRACE_MINUTES,
            )

    if not created:
        created = [_manual_event(student_id, event_type, now)]
        if event_type == CHECK_OUT:
            _close_current_subject(db, student_id, now)

    db.add_all(created)
    db.commit()
    return created


def get_day_summary(
    db: Session,
    student_id: uuid.UUID,
    study_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> DaySummaryResponse:
    """Statut, événements et temps d'étude d'une journée (par défaut la journée en cours)."""
    now = now or datetime.now(timezone.utc)
    study_date = study_date or study_date_of(now)
    _get_student(db, student_id)

    bounds = study_day_bounds(study_date)
    events = load_events(db, student_id, bounds.start, bounds.end)
    sessions = extract_study_sessions(events, bounds.end, now)
    open_session = next((s for s in sessions if s.is_open), None)

    return DaySummaryResponse(
        student_id=student_id,
        study_date=study_date,
        status=current_status(events),
        total_seconds=reduce_study_seconds(events, bounds.end, now),
        session_started_at=open_session.start if open_session else None,
        events=[AttendanceEventResponse.model_validate(e) for e in events],
    )
