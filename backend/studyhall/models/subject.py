"""
Modèle SQLAlchemy pour les sessions de matière (ce que l'élève étudie en ce moment).
Une sortie clôture la session en cours (is_current = False, ended_at renseigné).
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID

from studyhall.database import Base


class StudySubject(Base):
    __tablename__ = "study_subjects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    subject_name = Column(String(100), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)  # NULL = session en cours
    is_current = Column(Boolean, default=True)
