"""
Routers pour la révision d'intégrité des présences signalées.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from chamada.database import get_db
from chamada.schemas.adjustment import AdjustmentResponse
from chamada.schemas.report import EvidenceLinks
from chamada.schemas.review import DuplicateDeviceReport, ReviewDecision, ReviewDecisionResult, ReviewQueue
from chamada.security import Actor, get_current_actor
from chamada.services import adjustment_service, evidence_service, review_service, session_service

# GET /api/v1/review/...
router = APIRouter(prefix="/api/v1/review", tags=["Révision"])

# POST /api/v1/attendance-records/{record_id}/...
records_router = APIRouter(prefix="/api/v1/attendance-records", tags=["Révision"])


@router.get(
    "/queue",
    response_model=ReviewQueue,
    summary="File des présences à réviser",
)
def get_review_queue(
    show_all: bool = Query(default=False),
    professor_user_id: Optional[uuid.UUID] = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Enregistrements needs_review, les plus anciens d'abord ; aperçu limité sauf show_all=true."""
    professor_id = session_service.resolve_professor_scope(actor, professor_user_id)
    return review_service.get_review_queue(db, professor_id, show_all)


@router.get(
    "/duplicates",
    response_model=DuplicateDeviceReport,
    summary="Appareils partagés entre plusieurs élèves",
)
def get_duplicate_devices(
    professor_user_id: Optional[uuid.UUID] = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    professor_id = session_service.resolve_professor_scope(actor, professor_user_id)
    return review_service.get_duplicate_devices(db, professor_id)


@records_router.post(
    "/{record_id}/approve",
    response_model=ReviewDecisionResult,
    summary="Approuver une présence signalée",
)
def approve_record(
    record_id: uuid.UUID,
    data: Optional[ReviewDecision] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return review_service.approve_record(db, record_id, actor, data.justification if data else None)


@records_router.post(
    "/{record_id}/deny",
    response_model=ReviewDecisionResult,
    summary="Refuser une présence signalée",
)
def deny_record(
    record_id: uuid.UUID,
    data: Optional[ReviewDecision] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Passe l'enregistrement en FALTA ; l'élève garde son droit de recours (hors de ce service)."""
    return review_service.deny_record(db, record_id, actor, data.justification if data else None)


@records_router.get(
    "/{record_id}/adjustments",
    response_model=List[AdjustmentResponse],
    summary="Historique des ajustements d'un enregistrement",
)
def list_adjustments(
    record_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return adjustment_service.list_adjustments(db, record_id, actor)


@records_router.get(
    "/{record_id}/evidence",
    response_model=EvidenceLinks,
    summary="Liens signés vers les preuves",
)
def get_evidence_links(
    record_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return evidence_service.get_evidence_links(db, record_id, actor)
