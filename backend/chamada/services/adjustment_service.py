"""
Journal des ajustements de présence (append-only).

Chaque changement de statut d'un enregistrement existant, fait par un humain,
laisse une entrée : ancien statut, nouveau statut, auteur, rôle, justification.
L'entrée est ajoutée à l'unité de travail de l'appelant et part dans le même
commit que le changement de statut.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from chamada.exceptions import NotFoundError
from chamada.models.attendance_adjustment import AttendanceAdjustment
from chamada.models.attendance_record import AttendanceRecord
from chamada.models.enums import AttendanceStatus
from chamada.schemas.adjustment import AdjustmentResponse
from chamada.security import Actor
from chamada.services import session_service

logger = logging.getLogger(__name__)

DEFAULT_JUSTIFICATION_PROFESSOR = "Revisão pelo professor"
DEFAULT_JUSTIFICATION_STAFF = "Revisão pela coordenação"


def default_justification(actor: Actor) -> str:
    return DEFAULT_JUSTIFICATION_STAFF if actor.is_staff else DEFAULT_JUSTIFICATION_PROFESSOR


def record_adjustment(
    db: Session,
    record: AttendanceRecord,
    from_status: AttendanceStatus,
    to_status: AttendanceStatus,
    actor: Actor,
    justification: Optional[str] = None,
) -> AttendanceAdjustment:
    """
    Ajoute une entrée au journal sans committer.
    Justification vide → note par défaut selon le rôle de l'auteur.
    """
    note = (justification or "").strip() or default_justification(actor)
    adjustment = AttendanceAdjustment(
        id=uuid.uuid4(),
        record_id=record.id,
        from_status=AttendanceStatus(from_status).value,
        to_status=AttendanceStatus(to_status).value,
        changed_by_user_id=actor.id,
        changed_by_role=actor.role.value,
        justification=note,
    )
    db.add(adjustment)
    logger.debug(
        "Ajustement préparé : enregistrement %s : %s → %s par %s (%s)",
        record.id, adjustment.from_status, adjustment.to_status, actor.id, actor.role.value,
    )
    return adjustment


def list_adjustments(db: Session, record_id: uuid.UUID, actor: Actor) -> List[AdjustmentResponse]:
    """Historique d'un enregistrement, dans l'ordre d'insertion."""
    record = db.get(AttendanceRecord, record_id)
    if record is None:
        raise NotFoundError(f"Enregistrement {record_id} introuvable.")
    session_service.ensure_can_manage(session_service.load_session(db, record.session_id), actor)

    adjustments = db.execute(
        select(AttendanceAdjustment)
        .where(AttendanceAdjustment.record_id == record_id)
        .order_by(AttendanceAdjustment.seq, AttendanceAdjustment.created_at, AttendanceAdjustment.id)
    ).scalars().all()
    return [AdjustmentResponse.model_validate(a) for a in adjustments]
