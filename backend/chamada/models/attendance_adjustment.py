"""
Modèle SQLAlchemy pour le journal des ajustements de présence.

Append-only : une entrée par changement de statut fait par un humain.
Les écouteurs ci-dessous refusent toute modification ou suppression via l'ORM.
"""

import uuid
from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Identity, String, Text, event, func
from sqlalchemy.dialects.postgresql import UUID

from chamada.database import Base


class AttendanceAdjustment(Base):
    __tablename__ = "attendance_adjustments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Ordre de réception attribué par la base (created_at = début de transaction sous PostgreSQL)
    seq = Column(BigInteger, Identity(), nullable=True, unique=True)
    record_id = Column(UUID(as_uuid=True), ForeignKey("attendance_records.id"), nullable=False, index=True)
    from_status = Column(String(20), nullable=False)
    to_status = Column(String(20), nullable=False)
    changed_by_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    changed_by_role = Column(String(50), nullable=False)
    justification = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


@event.listens_for(AttendanceAdjustment, "before_update")
def _refuse_update(mapper, connection, target):
    raise RuntimeError("Le journal des ajustements est en ajout seul : modification interdite.")


@event.listens_for(AttendanceAdjustment, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise RuntimeError("Le journal des ajustements est en ajout seul : suppression interdite.")
