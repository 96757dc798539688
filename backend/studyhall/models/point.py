"""
Modèles SQLAlchemy pour les points (récompenses / pénalités) et l'historique hebdomadaire.
"""

import uuid
from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func,
)
from sqlalchemy.dialects.postgresql import UUID

from studyhall.database import Base

POINT_REWARD = "reward"
POINT_PENALTY = "penalty"


class Point(Base):
    __tablename__ = "points"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(20), nullable=False)      # reward, penalty
    amount = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    is_auto = Column(Boolean, default=False)       # True = attribué par un job batch
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class WeeklyPointOutcome(Base):
    """
    Résultat de l'évaluation hebdomadaire d'un élève.
    L'unicité (student_id, week_start) est la garde d'idempotence du job hebdomadaire.
    """
    __tablename__ = "weekly_point_outcomes"
    __table_args__ = (
        UniqueConstraint("student_id", "week_start", name="uq_weekly_point_outcomes_student_week"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    week_start = Column(Date, nullable=False)
    total_study_minutes = Column(Integer, nullable=False)
    goal_minutes = Column(Integer, nullable=False)
    achieved = Column(Boolean, nullable=False)
    point_id = Column(UUID(as_uuid=True), ForeignKey("points.id"), nullable=True)  # NULL = ni récompense ni pénalité
    created_at = Column(DateTime(timezone=True), server_default=func.now())
