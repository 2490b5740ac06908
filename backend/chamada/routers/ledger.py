"""
Routers pour la saisie manuelle des présences (liste d'appel).
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from chamada.database import get_db
from chamada.schemas.ledger import LedgerCommitResult, ManualAttendanceCommit, RosterResponse
from chamada.security import Actor, get_current_actor
from chamada.services import ledger_service

router = APIRouter(prefix="/api/v1/attendance-sessions", tags=["Liste d'appel"])


@router.get(
    "/{session_id}/roster",
    response_model=RosterResponse,
    summary="Liste d'appel de la session",
)
def get_roster(
    session_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Élèves ATIVO de la classe, triés par nom, avec leur statut (null = sans enregistrement)."""
    return ledger_service.load_roster(db, session_id, actor)


@router.post(
    "/{session_id}/manual-attendance",
    response_model=LedgerCommitResult,
    summary="Enregistrer la saisie manuelle",
)
def commit_manual_attendance(
    session_id: uuid.UUID,
    payload: ManualAttendanceCommit,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Applique mark_all puis les changements individuels ; chaque élève est une écriture indépendante.

    Retourne 200 si tout est écrit, 207 avec le même rapport si certaines
    écritures ont échoué (les réussies sont conservées ; renvoyer failed_student_ids pour réessayer).
    """
    return ledger_service.commit_manual_attendance(db, session_id, actor, payload)
