"""
Schémas Pydantic pour la saisie manuelle des présences et la consultation du temps d'étude.
"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from studyhall.models.attendance import ATTENDANCE_TYPES


class ManualAttendanceCreate(BaseModel):
    """Entrée, sortie ou pause déclarée depuis l'application."""

    type: str

    @field_validator("type")
    @classmethod
    def valid_type(cls, v: str) -> str:
        if v not in ATTENDANCE_TYPES:
            raise ValueError(f"Type de présence invalide. Valeurs acceptées : {ATTENDANCE_TYPES}")
        return v


class AttendanceEventResponse(BaseModel):
    id: Optional[uuid.UUID] = None
    student_id: uuid.UUID
    type: str
    timestamp: datetime
    source: str

    model_config = {"from_attributes": True}


class DaySummaryResponse(BaseModel):
    """Journée d'étude d'un élève : statut courant, événements et total."""

    student_id: uuid.UUID
    study_date: date
    status: str                            # checked_in, on_break, checked_out
    total_seconds: int
    session_started_at: Optional[datetime] = None   # Début de la session ouverte, le cas échéant
    events: List[AttendanceEventResponse]


class WeeklyProgressResponse(BaseModel):
    student_id: uuid.UUID
    week_start: date
    goal_minutes: int
    actual_minutes: int
    progress_percent: int
    reward_points: int
    penalty_points: int
