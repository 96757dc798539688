"""
Modèles SQLAlchemy pour les élèves et leur lien avec le système de contrôle d'accès.
"""

import uuid
from sqlalchemy import Column, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from studyhall.database import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    seat_number = Column(String(20), nullable=True)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=True)
    student_type_id = Column(UUID(as_uuid=True), ForeignKey("student_types.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    student_type = relationship("StudentType", lazy="joined")


class StudentAccessLink(Base):
    """
    Lien élève ↔ identifiant du contrôle d'accès (e_id).
    approved_at : à partir de cet instant, les passages du badge sont fiables pour cet élève.
    """
    __tablename__ = "student_access_links"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"),
                        unique=True, nullable=False)
    access_user_id = Column(String(50), unique=True, nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
