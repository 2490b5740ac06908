"""
Modèle SQLAlchemy pour les sessions de présence (chamadas).

Cycle de vie : ABERTA → ENCERRADA → ABERTA (réouverture) → ENCERRADA → … → AUDITORIA_FINALIZADA (externe)
- closed_at est renseigné si et seulement si status != ABERTA
- seuls les hashes SHA-256 du code d'entrée et du jeton de clôture sont stockés
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, func, text
from sqlalchemy.dialects.postgresql import UUID

from chamada.database import Base


class AttendanceSession(Base):
    """Une chamada pour un couple (classe, discipline), propriété d'un professeur."""
    __tablename__ = "attendance_sessions"
    __table_args__ = (
        # Une seule session ABERTA par professeur, garanti par la base
        Index(
            "uq_attendance_sessions_open_professor",
            "professor_user_id",
            unique=True,
            postgresql_where=text("status = 'ABERTA'"),
            sqlite_where=text("status = 'ABERTA'"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id"), nullable=False)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id"), nullable=False)
    professor_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    lesson_entry_id = Column(UUID(as_uuid=True), nullable=True)  # Entrée du plan de cours (optionnelle)

    opened_at = Column(DateTime(timezone=True), nullable=False)
    closed_at = Column(DateTime(timezone=True), nullable=True)   # NULL = session ABERTA
    status = Column(String(30), nullable=False, default="ABERTA")  # ABERTA, ENCERRADA, AUDITORIA_FINALIZADA

    entry_code_hash = Column(String(64), nullable=False)
    close_token_hash = Column(String(64), nullable=False)
    public_token = Column(String(64), unique=True, nullable=False)  # Lien public de la page élève

    require_geo = Column(Boolean, nullable=False, default=False)
    geo_lat = Column(Float, nullable=True)
    geo_lng = Column(Float, nullable=True)
    geo_radius_m = Column(Integer, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
