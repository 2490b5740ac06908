"""
Routers pour le cycle de vie des sessions de présence (chamadas).
Ouverture, clôture et réouverture par le professeur ou la coordination.

Les erreurs métier (ChamadaError) sont traduites en codes HTTP dans main.py.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from chamada.database import get_db
from chamada.schemas.session import SessionClose, SessionOpen, SessionOpened, SessionResponse
from chamada.security import Actor, get_current_actor
from chamada.services import report_service, session_service

router = APIRouter(prefix="/api/v1/attendance-sessions", tags=["Sessions"])


@router.post(
    "",
    response_model=SessionOpened,
    status_code=201,
    summary="Ouvrir une chamada",
)
def open_session(
    data: SessionOpen,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Ouvre une session ABERTA pour une discipline d'une classe.

    La réponse contient le code d'entrée et le jeton de clôture en clair :
    c'est la seule fois qu'ils sont transmis (seuls leurs hashes sont stockés).

    Retourne 409 si le professeur a déjà une session ouverte,
    400 si la discipline de classe est introuvable.
    """
    return session_service.open_session(db, data, actor)


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Détail d'une session",
)
def get_session(
    session_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return session_service.get_session(db, session_id, actor)


@router.post(
    "/{session_id}/close",
    response_model=SessionResponse,
    summary="Clôturer une session",
)
def close_session(
    session_id: uuid.UUID,
    data: Optional[SessionClose] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Clôture ABERTA → ENCERRADA. Idempotent sur une session déjà clôturée.
    Si close_token est fourni et ne correspond pas, retourne 403.
    """
    return session_service.close_session(db, session_id, actor, data.close_token if data else None)


@router.post(
    "/{session_id}/reopen",
    response_model=SessionResponse,
    summary="Rouvrir une session",
)
def reopen_session(
    session_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Rouvre ENCERRADA → ABERTA pour corrections ou enregistrements tardifs.
    Retourne 409 si une autre session du professeur est déjà ouverte.
    """
    return session_service.reopen_session(db, session_id, actor)


@router.get(
    "/{session_id}/qrcode",
    summary="QR code du lien d'enregistrement élève",
    response_class=Response,
)
def get_checkin_qrcode(
    session_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    png = session_service.render_checkin_qr(db, session_id, actor)
    return Response(content=png, media_type="image/png")


@router.get(
    "/{session_id}/ata",
    summary="Exporter l'ATA de la session en CSV",
)
def export_ata(
    session_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Procès-verbal de la session : une ligne par élève inscrit puis les totaux.
    Encodage UTF-8 avec BOM, séparateur « ; ».
    """
    csv_content = report_service.export_ata_csv(db, session_id, actor)
    return Response(
        content=csv_content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="ata_{session_id}.csv"'},
    )
