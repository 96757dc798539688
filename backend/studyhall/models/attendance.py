"""
Modèle SQLAlchemy pour les événements de présence canoniques.

- Immuables une fois écrits : le moteur ne les modifie ni ne les supprime jamais
- source = external_access : importé depuis le contrôle d'accès, manual : saisi par l'élève ou un admin
- L'index unique partiel (student_id, timestamp) sur source = external_access
  garantit qu'un même passage n'est inséré qu'une fois, même si deux syncs se chevauchent
"""

import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Index, String, func, text
from sqlalchemy.dialects.postgresql import UUID

from studyhall.database import Base

CHECK_IN = "check_in"
CHECK_OUT = "check_out"
BREAK_START = "break_start"
BREAK_END = "break_end"
ATTENDANCE_TYPES = (CHECK_IN, CHECK_OUT, BREAK_START, BREAK_END)

SOURCE_MANUAL = "manual"
SOURCE_EXTERNAL_ACCESS = "external_access"


class AttendanceEvent(Base):
    """Entrée, sortie ou pause d'un élève, quelle que soit son origine."""
    __tablename__ = "attendance_events"
    __table_args__ = (
        Index("ix_attendance_events_student_timestamp", "student_id", "timestamp"),
        Index(
            "uq_attendance_events_external",
            "student_id", "timestamp",
            unique=True,
            postgresql_where=text("source = 'external_access'"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(20), nullable=False)       # check_in, check_out, break_start, break_end
    timestamp = Column(DateTime(timezone=True), nullable=False)
    source = Column(String(20), nullable=False, default=SOURCE_MANUAL)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
