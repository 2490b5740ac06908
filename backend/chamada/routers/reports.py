"""
Router des rapports de fréquence par discipline.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from chamada.database import get_db
from chamada.schemas.report import AttendanceSummary
from chamada.security import Actor, get_current_actor
from chamada.services import report_service

router = APIRouter(prefix="/api/v1/class-subjects", tags=["Rapports"])


@router.get(
    "/{class_subject_id}/attendance-summary",
    response_model=AttendanceSummary,
    summary="Fréquence par élève",
)
def get_attendance_summary(
    class_subject_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Pourcentage de présence de chaque élève sur les sessions clôturées.
    Les élèves sous le minimum de la discipline sont marqués at_risk.
    """
    return report_service.get_attendance_summary(db, class_subject_id, actor)
