"""
Router pour la saisie manuelle des présences et la consultation du temps d'étude.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from studyhall.database import get_db
from studyhall.schemas.attendance import (
    AttendanceEventResponse,
    DaySummaryResponse,
    ManualAttendanceCreate,
    WeeklyProgressResponse,
)
from studyhall.services import attendance_service, weekly_goal_service

router = APIRouter(prefix="/api/v1/students", tags=["Présences"])


def _to_http_error(e: ValueError) -> HTTPException:
    msg = str(e)
    if "introuvable" in msg:
        return HTTPException(status_code=404, detail=msg)
    return HTTPException(status_code=409, detail=msg)


@router.post(
    "/{student_id}/attendance",
    response_model=List[AttendanceEventResponse],
    status_code=201,
    summary="Enregistrer une entrée, une sortie ou une pause",
)
def record_attendance(
    student_id: uuid.UUID,
    data: ManualAttendanceCreate,
    db: Session = Depends(get_db),
):
    """
    Enregistre un événement manuel horodaté à l'instant de la requête.

    Retourne les événements créés (deux si une pause trop longue est convertie
    en sortie + entrée). 404 si l'élève est introuvable, 409 si la transition
    est incompatible avec le statut courant.
    """
    try:
        return attendance_service.record_manual_event(db, student_id, data.type)
    except ValueError as e:
        raise _to_http_error(e)


@router.get(
    "/{student_id}/study-time",
    response_model=DaySummaryResponse,
    summary="Temps d'étude d'une journée",
)
def get_study_time(
    student_id: uuid.UUID,
    study_date: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
):
    """Statut, événements et secondes d'étude de la journée demandée (par défaut : aujourd'hui)."""
    try:
        return attendance_service.get_day_summary(db, student_id, study_date=study_date)
    except ValueError as e:
        raise _to_http_error(e)


@router.get(
    "/{student_id}/weekly-progress",
    response_model=WeeklyProgressResponse,
    summary="Avancement de l'objectif hebdomadaire",
)
def get_weekly_progress(student_id: uuid.UUID, db: Session = Depends(get_db)):
    """Objectif pondéré de la semaine en cours et minutes déjà étudiées."""
    try:
        return weekly_goal_service.get_weekly_progress(db, student_id)
    except ValueError as e:
        raise _to_http_error(e)
