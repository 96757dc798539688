"""
Modèles SQLAlchemy pour les types d'élèves, les types de jours et les objectifs hebdomadaires.
L'objectif d'une semaine est la combinaison pondérée des réglages des 7 jours.
"""

import uuid
from sqlalchemy import (
    Column, Date, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint, func,
)
from sqlalchemy.dialects.postgresql import UUID

from studyhall.database import Base


class StudentType(Base):
    __tablename__ = "student_types"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    weekly_goal_hours = Column(Float, nullable=False, default=40)  # Objectif par défaut
    created_at = Column(DateTime, server_default=func.now())


class DateTypeDefinition(Base):
    """Type de jour propre à un établissement (ex. semestre, vacances, examens)."""
    __tablename__ = "date_type_definitions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class DateAssignment(Base):
    """Affectation d'un type de jour à une date du calendrier d'un établissement."""
    __tablename__ = "date_assignments"
    __table_args__ = (UniqueConstraint("branch_id", "date", name="uq_date_assignments_branch_date"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    date_type_id = Column(UUID(as_uuid=True), ForeignKey("date_type_definitions.id", ondelete="CASCADE"),
                          nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class WeeklyGoalSetting(Base):
    """Objectif hebdomadaire et barème de points pour un couple (type d'élève, type de jour)."""
    __tablename__ = "weekly_goal_settings"
    __table_args__ = (
        UniqueConstraint("student_type_id", "date_type_id", name="uq_weekly_goal_settings_types"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_type_id = Column(UUID(as_uuid=True), ForeignKey("student_types.id", ondelete="CASCADE"),
                             nullable=False)
    date_type_id = Column(UUID(as_uuid=True), ForeignKey("date_type_definitions.id", ondelete="CASCADE"),
                          nullable=False)
    weekly_goal_hours = Column(Float, nullable=False)
    reward_points = Column(Integer, nullable=False, default=1)
    penalty_points = Column(Integer, nullable=False, default=1)
    minimum_hours = Column(Float, nullable=False, default=0)  # 0 = pas de seuil minimum
    created_at = Column(DateTime, server_default=func.now())
