"""
Modèles SQLAlchemy pour les classes (turmas), les disciplines et leurs associations.
Nommé school_class pour éviter le conflit avec le mot-clé Python 'class'.
"""

import uuid
from sqlalchemy import Column, DateTime, Float, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID

from chamada.database import Base


class SchoolClass(Base):
    __tablename__ = "classes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(String(50), nullable=False)
    period = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class ClassStudent(Base):
    """Association classe ↔ élèves. Seuls les liens ATIVO comptent dans la liste d'appel."""
    __tablename__ = "class_students"

    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)
    status = Column(String(20), default="ATIVO")  # ATIVO, TRANCADO, TRANSFERIDO
    enrolled_at = Column(DateTime, server_default=func.now())


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    code = Column(String(50), nullable=True)
    min_attendance_pct = Column(Float, nullable=True)  # NULL → seuil par défaut (settings)


class ClassSubject(Base):
    """Discipline enseignée dans une classe par un professeur."""
    __tablename__ = "class_subjects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    professor_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    status = Column(String(20), default="ATIVO")
