"""
Service de révision d'intégrité des présences.

Le processus d'enregistrement élève (hors de ce service) marque needs_review
et remplit review_reason (« sem selfie; fora do raio; … ») lorsqu'une preuve
manque ou paraît suspecte. Ici le professeur ou la coordination :
- consulte la file des enregistrements signalés, avec leurs badges de preuve
- repère les appareils utilisés pour plusieurs élèves d'une même session
- approuve (PRESENTE) ou refuse (FALTA) ; dans les deux cas needs_review repasse à False
"""

import logging
import math
import uuid
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chamada.config import settings
from chamada.exceptions import NotFoundError, TransientIOError, ValidationError
from chamada.models.attendance_record import AttendanceRecord
from chamada.models.attendance_session import AttendanceSession
from chamada.models.enums import AttendanceStatus, GeoEvidence, SessionStatus
from chamada.models.school_class import SchoolClass, Subject
from chamada.models.student import Student
from chamada.schemas.review import (
    DuplicateDeviceReport,
    DuplicateGroup,
    DuplicateRecord,
    EvidenceBadges,
    ReviewDecisionResult,
    ReviewItem,
    ReviewQueue,
)
from chamada.security import Actor
from chamada.services import adjustment_service, session_service

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000
FINGERPRINT_PREVIEW_LENGTH = 8


# ---------------------------------------------------------------------------
# Badges de preuve
# ---------------------------------------------------------------------------

def split_review_reason(text: Optional[str]) -> List[str]:
    """« sem selfie; fora do raio ; » → ["sem selfie", "fora do raio"]."""
    if not text:
        return []
    return [part.strip() for part in text.split(";") if part.strip()]


def truncate_fingerprint(fingerprint: Optional[str]) -> Optional[str]:
    if not fingerprint:
        return None
    if len(fingerprint) <= FINGERPRINT_PREVIEW_LENGTH:
        return fingerprint
    return fingerprint[:FINGERPRINT_PREVIEW_LENGTH] + "..."


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance orthodromique en mètres entre deux points GPS."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def geo_evidence(record: AttendanceRecord) -> GeoEvidence:
    if record.geo_ok is None:
        return GeoEvidence.AUSENTE
    return GeoEvidence.DENTRO if record.geo_ok else GeoEvidence.FORA


def build_evidence(record: AttendanceRecord, session: Optional[AttendanceSession] = None) -> EvidenceBadges:
    distance = None
    if (
        session is not None
        and session.geo_lat is not None and session.geo_lng is not None
        and record.geo_lat is not None and record.geo_lng is not None
    ):
        distance = round(haversine_m(session.geo_lat, session.geo_lng, record.geo_lat, record.geo_lng), 1)

    return EvidenceBadges(
        has_selfie=bool(record.selfie_path),
        has_signature=bool(record.signature_path),
        geolocation=geo_evidence(record),
        distance_m=distance,
        fingerprint_short=truncate_fingerprint(record.device_fingerprint),
    )


def group_duplicate_fingerprints(records: Iterable) -> Dict[Tuple[uuid.UUID, str], List]:
    """
    Regroupe par (session_id, device_fingerprint).
    Sans empreinte → ignoré. Seuls les groupes de plus d'un enregistrement sont
    renvoyés, quel que soit leur final_status.
    """
    groups: Dict[Tuple[uuid.UUID, str], List] = {}
    for record in records:
        if not record.device_fingerprint:
            continue
        groups.setdefault((record.session_id, record.device_fingerprint), []).append(record)
    return {key: members for key, members in groups.items() if len(members) > 1}


# ---------------------------------------------------------------------------
# Lecture
# ---------------------------------------------------------------------------

def get_review_queue(db: Session, professor_user_id: uuid.UUID, show_all: bool = False) -> ReviewQueue:
    """
    Enregistrements needs_review des sessions du professeur, les plus anciens d'abord.
    Par défaut seuls les REVIEW_QUEUE_PREVIEW_SIZE premiers sont renvoyés.
    Les éléments d'une session en audit finalisé restent visibles mais read_only :
    approve / deny y sont refusés.
    """
    rows = db.execute(
        select(AttendanceRecord, AttendanceSession, Student, SchoolClass.code, Subject.name)
        .join(AttendanceSession, AttendanceSession.id == AttendanceRecord.session_id)
        .join(Student, Student.id == AttendanceRecord.student_id)
        .outerjoin(SchoolClass, SchoolClass.id == AttendanceSession.class_id)
        .outerjoin(Subject, Subject.id == AttendanceSession.subject_id)
        .where(
            AttendanceSession.professor_user_id == professor_user_id,
            AttendanceRecord.needs_review.is_(True),
        )
        .order_by(AttendanceRecord.registered_at, AttendanceRecord.created_at)
    ).all()

    total = len(rows)
    if not show_all:
        rows = rows[:settings.REVIEW_QUEUE_PREVIEW_SIZE]

    items = [
        ReviewItem(
            record_id=record.id,
            session_id=session.id,
            student_id=student.id,
            student_name=student.name,
            student_enrollment=student.enrollment,
            class_code=class_code,
            subject_name=subject_name,
            final_status=record.final_status,
            registered_at=record.registered_at,
            protocol=record.protocol,
            session_status=session.status,
            read_only=session.status == SessionStatus.AUDITORIA_FINALIZADA,
            reasons=split_review_reason(record.review_reason),
            evidence=build_evidence(record, session),
            ip_address=record.ip_address,
            user_agent=record.user_agent,
        )
        for record, session, student, class_code, subject_name in rows
    ]
    return ReviewQueue(total=total, has_more=total > len(items), items=items)


def get_duplicate_devices(db: Session, professor_user_id: uuid.UUID) -> DuplicateDeviceReport:
    """
    Appareils ayant servi à plusieurs élèves dans une même session.
    Toutes les sessions du professeur sont examinées, y compris celles en audit finalisé.
    """
    rows = db.execute(
        select(AttendanceRecord, Student, SchoolClass.code, Subject.name)
        .join(AttendanceSession, AttendanceSession.id == AttendanceRecord.session_id)
        .join(Student, Student.id == AttendanceRecord.student_id)
        .outerjoin(SchoolClass, SchoolClass.id == AttendanceSession.class_id)
        .outerjoin(Subject, Subject.id == AttendanceSession.subject_id)
        .where(
            AttendanceSession.professor_user_id == professor_user_id,
            AttendanceRecord.device_fingerprint.isnot(None),
        )
        .order_by(AttendanceRecord.registered_at)
    ).all()

    context = {record.id: (student, class_code, subject_name) for record, student, class_code, subject_name in rows}
    groups = []
    for (session_id, fingerprint), records in group_duplicate_fingerprints(r[0] for r in rows).items():
        _, class_code, subject_name = context[records[0].id]
        groups.append(DuplicateGroup(
            session_id=session_id,
            fingerprint=fingerprint,
            fingerprint_short=truncate_fingerprint(fingerprint),
            class_code=class_code,
            subject_name=subject_name,
            records=[
                DuplicateRecord(
                    record_id=record.id,
                    student_id=record.student_id,
                    student_name=context[record.id][0].name,
                    student_enrollment=context[record.id][0].enrollment,
                    final_status=record.final_status,
                    registered_at=record.registered_at,
                    geolocation=geo_evidence(record),
                )
                for record in records
            ],
        ))

    if groups:
        logger.info("%d appareil(s) partagé(s) détecté(s) pour le professeur %s", len(groups), professor_user_id)
    return DuplicateDeviceReport(total_groups=len(groups), groups=groups)


# ---------------------------------------------------------------------------
# Décisions
# ---------------------------------------------------------------------------

def load_record_for_review(
    db: Session, record_id: uuid.UUID, actor: Actor,
) -> Tuple[AttendanceRecord, AttendanceSession]:
    """Enregistrement + sa session, après contrôle des droits de l'acteur."""
    record = db.get(AttendanceRecord, record_id)
    if record is None:
        raise NotFoundError(f"Enregistrement {record_id} introuvable.")
    session = session_service.load_session(db, record.session_id)
    session_service.ensure_can_manage(session, actor)
    return record, session


def approve_record(
    db: Session, record_id: uuid.UUID, actor: Actor, justification: Optional[str] = None,
) -> ReviewDecisionResult:
    """Valide la présence signalée : PRESENTE, needs_review = False."""
    return _decide(db, record_id, actor, AttendanceStatus.PRESENTE, justification)


def deny_record(
    db: Session, record_id: uuid.UUID, actor: Actor, justification: Optional[str] = None,
) -> ReviewDecisionResult:
    """
    Refuse la présence signalée : FALTA, needs_review = False.
    L'élève peut contester plus tard par le canal de recours (hors de ce service).
    """
    return _decide(db, record_id, actor, AttendanceStatus.FALTA, justification)


def _decide(
    db: Session,
    record_id: uuid.UUID,
    actor: Actor,
    to_status: AttendanceStatus,
    justification: Optional[str],
) -> ReviewDecisionResult:
    record, session = load_record_for_review(db, record_id, actor)
    if session.status == SessionStatus.AUDITORIA_FINALIZADA:
        raise ValidationError("Session en audit finalisé : la décision ne peut plus être modifiée.")

    from_status = AttendanceStatus(record.final_status)
    adjustment = None
    if from_status != to_status:
        record.final_status = to_status.value
        adjustment = adjustment_service.record_adjustment(
            db, record, from_status, to_status, actor, justification,
        )
    record.needs_review = False

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Échec de la révision de l'enregistrement %s : %s", record_id, exc)
        raise TransientIOError("Impossible d'enregistrer la décision, réessayez.") from exc

    logger.info(
        "Enregistrement %s révisé par %s : %s → %s",
        record_id, actor.id, from_status.value, to_status.value,
    )
    return ReviewDecisionResult(
        record_id=record.id,
        from_status=from_status,
        final_status=to_status,
        needs_review=False,
        adjustment_id=adjustment.id if adjustment else None,
    )
