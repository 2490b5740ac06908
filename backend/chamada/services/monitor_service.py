"""
Service de suivi en direct des sessions d'un professeur.

Le client interroge cet instantané toutes les LIVE_MONITOR_POLL_SECONDS secondes.
La durée écoulée est calculée par le serveur à chaque poll ; entre deux polls
le client se contente d'incrémenter l'affichage localement.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from chamada.config import settings
from chamada.models.attendance_record import AttendanceRecord
from chamada.models.attendance_session import AttendanceSession
from chamada.models.enums import AttendanceStatus, SessionStatus
from chamada.models.school_class import SchoolClass, Subject
from chamada.schemas.monitor import LiveMonitorResponse, LiveSession

logger = logging.getLogger(__name__)


def tally_records(rows: Iterable[Tuple[uuid.UUID, str]]) -> Dict[uuid.UUID, Dict[str, int]]:
    """Compte présents et total d'enregistrements par session à partir de (session_id, final_status)."""
    counts: Dict[uuid.UUID, Dict[str, int]] = {}
    for session_id, final_status in rows:
        entry = counts.setdefault(session_id, {"present": 0, "total": 0})
        entry["total"] += 1
        if final_status == AttendanceStatus.PRESENTE:
            entry["present"] += 1
    return counts


def format_elapsed(seconds: int) -> str:
    """MM:SS sous une heure, H:MM:SS au-delà."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def list_active_sessions(
    db: Session,
    professor_user_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> LiveMonitorResponse:
    """
    Sessions ABERTA du professeur + sessions ENCERRADA depuis moins de
    RECENT_SESSION_WINDOW_HOURS, les plus récentes d'abord, avec leurs compteurs.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=settings.RECENT_SESSION_WINDOW_HOURS)

    rows = db.execute(
        select(AttendanceSession, SchoolClass.code, Subject.name)
        .outerjoin(SchoolClass, SchoolClass.id == AttendanceSession.class_id)
        .outerjoin(Subject, Subject.id == AttendanceSession.subject_id)
        .where(
            AttendanceSession.professor_user_id == professor_user_id,
            or_(
                AttendanceSession.status == SessionStatus.ABERTA.value,
                and_(
                    AttendanceSession.status == SessionStatus.ENCERRADA.value,
                    AttendanceSession.closed_at >= cutoff,
                ),
            ),
        )
        .order_by(AttendanceSession.opened_at.desc())
    ).all()

    counts: Dict[uuid.UUID, Dict[str, int]] = {}
    if rows:
        session_ids = [session.id for session, _, _ in rows]
        counts = tally_records(
            db.execute(
                select(AttendanceRecord.session_id, AttendanceRecord.final_status)
                .where(AttendanceRecord.session_id.in_(session_ids))
            ).all()
        )

    sessions = []
    for session, class_code, subject_name in rows:
        tally = counts.get(session.id, {"present": 0, "total": 0})
        end = session.closed_at if session.status != SessionStatus.ABERTA and session.closed_at else now
        elapsed = max(0, int((_as_utc(end) - _as_utc(session.opened_at)).total_seconds()))
        sessions.append(LiveSession(
            id=session.id,
            class_id=session.class_id,
            subject_id=session.subject_id,
            class_code=class_code,
            subject_name=subject_name,
            status=session.status,
            opened_at=session.opened_at,
            closed_at=session.closed_at,
            require_geo=bool(session.require_geo),
            geo_radius_m=session.geo_radius_m,
            public_token=session.public_token,
            present_count=tally["present"],
            absent_count=max(0, tally["total"] - tally["present"]),
            total_count=tally["total"],
            elapsed_seconds=elapsed,
            elapsed_display=format_elapsed(elapsed),
        ))

    logger.debug("Suivi en direct : %d session(s) pour le professeur %s", len(sessions), professor_user_id)
    return LiveMonitorResponse(
        professor_user_id=professor_user_id,
        sessions=sessions,
        poll_interval_seconds=settings.LIVE_MONITOR_POLL_SECONDS,
        generated_at=now,
    )


def _as_utc(value: datetime) -> datetime:
    # Les colonnes sans fuseau (SQLite en test) sont supposées en UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
