"""
Router du suivi en direct des sessions (polling côté client).
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from chamada.database import get_db
from chamada.schemas.monitor import LiveMonitorResponse
from chamada.security import Actor, get_current_actor
from chamada.services import monitor_service, session_service

router = APIRouter(prefix="/api/v1/monitor", tags=["Suivi en direct"])


@router.get(
    "/sessions",
    response_model=LiveMonitorResponse,
    summary="Sessions ouvertes et récemment clôturées",
)
def list_active_sessions(
    professor_user_id: Optional[uuid.UUID] = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Instantané des sessions du professeur (soi-même par défaut ; un autre
    professeur uniquement pour la coordination). À rappeler toutes les
    poll_interval_seconds secondes.
    """
    professor_id = session_service.resolve_professor_scope(actor, professor_user_id)
    return monitor_service.list_active_sessions(db, professor_id)
