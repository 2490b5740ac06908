"""
Modèle SQLAlchemy pour le statut final de présence d'un élève dans une session.

Créé soit par la page élève (source AUTO_ALUNO, hors de ce service),
soit par la saisie manuelle (MANUAL_PROF / MANUAL_COORD).
- au plus un enregistrement par (session, élève)
- needs_review = True ⇒ review_reason non vide (causes séparées par ';')
- pas de géolocalisation ⇒ geo_ok = NULL (jamais False)
"""

import uuid
from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, String, Text, UniqueConstraint, func,
)
from sqlalchemy.dialects.postgresql import UUID

from chamada.database import Base


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_attendance_records_session_student"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(UUID(as_uuid=True), ForeignKey("attendance_sessions.id"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id"), nullable=False)

    final_status = Column(String(20), nullable=False, default="FALTA")  # PRESENTE, FALTA, JUSTIFICADO
    source = Column(String(20), nullable=True)                          # AUTO_ALUNO, MANUAL_PROF, MANUAL_COORD
    registered_at = Column(DateTime(timezone=True), nullable=True)

    # Preuves (chemins dans le stockage, jamais d'URL publique)
    selfie_path = Column(String(500), nullable=True)
    signature_path = Column(String(500), nullable=True)

    geo_lat = Column(Float, nullable=True)
    geo_lng = Column(Float, nullable=True)
    geo_ok = Column(Boolean, nullable=True)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    device_fingerprint = Column(String(255), nullable=True)

    needs_review = Column(Boolean, nullable=False, default=False)
    review_reason = Column(Text, nullable=True)

    protocol = Column(String(30), nullable=False)  # Reçu lisible remis à l'élève

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
