"""
Rapports de présence :
- ATA (procès-verbal) d'une session au format CSV
- pourcentages de fréquence par élève pour une discipline d'une classe
"""

import csv
import io
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chamada.config import settings
from chamada.exceptions import NotFoundError, PermissionDeniedError
from chamada.models.attendance_record import AttendanceRecord
from chamada.models.attendance_session import AttendanceSession
from chamada.models.enums import AttendanceStatus, CaptureSource, SessionStatus
from chamada.models.school_class import ClassStudent, ClassSubject, Subject
from chamada.models.student import Student
from chamada.schemas.report import AttendanceSummary, StudentAttendanceRate
from chamada.security import Actor
from chamada.services import ledger_service

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    AttendanceStatus.PRESENTE: "Presente",
    AttendanceStatus.FALTA: "Falta",
    AttendanceStatus.JUSTIFICADO: "Justificado",
}
SOURCE_LABELS = {
    CaptureSource.AUTO_ALUNO: "Automático (aluno)",
    CaptureSource.MANUAL_PROF: "Manual (professor)",
    CaptureSource.MANUAL_COORD: "Manual (coordenação)",
}
UNRECORDED_LABEL = "Sem registro"

CLOSED_STATUSES = (SessionStatus.ENCERRADA.value, SessionStatus.AUDITORIA_FINALIZADA.value)


def format_local_time(value: Optional[datetime]) -> str:
    """HH:MM dans le fuseau REPORT_TIMEZONE ; une date sans fuseau est lue comme UTC."""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(settings.REPORT_TIMEZONE)).strftime("%H:%M")


def export_ata_csv(db: Session, session_id: uuid.UUID, actor: Actor) -> str:
    """
    Génère l'ATA d'une session : une ligne par élève inscrit, puis les totaux.
    Retourne le contenu CSV sous forme de string (UTF-8 BOM pour Excel).
    """
    roster = ledger_service.load_roster(db, session_id, actor)

    output = io.StringIO()
    writer = csv.writer(output, delimiter=";")
    writer.writerow(["#", "Aluno", "Matrícula", "Frequência", "Forma de Registro", f"Hora ({settings.REPORT_TIMEZONE})"])

    for index, entry in enumerate(roster.students, start=1):
        writer.writerow([
            index,
            entry.name,
            entry.enrollment,
            STATUS_LABELS[entry.status] if entry.status else UNRECORDED_LABEL,
            SOURCE_LABELS[entry.source] if entry.source else "",
            format_local_time(entry.registered_at),
        ])

    writer.writerow([])
    writer.writerow(["Presentes", roster.present])
    writer.writerow(["Faltas", roster.absent])
    writer.writerow(["Justificados", roster.excused])
    writer.writerow([UNRECORDED_LABEL, roster.unrecorded])
    writer.writerow(["Total", roster.total])

    logger.info("ATA exportée pour la session %s (%d élèves)", session_id, roster.total)
    return "\ufeff" + output.getvalue()  # BOM pour compatibilité Excel


def get_attendance_summary(db: Session, class_subject_id: uuid.UUID, actor: Actor) -> AttendanceSummary:
    """
    Fréquence de chaque élève ATIVO sur les sessions clôturées de la discipline :
    présences / sessions × 100. at_risk si sous le minimum de la discipline.
    """
    class_subject = db.get(ClassSubject, class_subject_id)
    if class_subject is None:
        raise NotFoundError(f"Discipline de classe {class_subject_id} introuvable.")
    if not actor.is_staff and class_subject.professor_user_id != actor.id:
        raise PermissionDeniedError("Action réservée au professeur de la discipline ou à la coordination.")

    subject = db.get(Subject, class_subject.subject_id)
    min_pct = settings.DEFAULT_MIN_ATTENDANCE_PCT
    if subject is not None and subject.min_attendance_pct is not None:
        min_pct = subject.min_attendance_pct

    session_ids = db.execute(
        select(AttendanceSession.id).where(
            AttendanceSession.class_id == class_subject.class_id,
            AttendanceSession.subject_id == class_subject.subject_id,
            AttendanceSession.status.in_(CLOSED_STATUSES),
        )
    ).scalars().all()

    students = db.execute(
        select(Student)
        .join(ClassStudent, ClassStudent.student_id == Student.id)
        .where(ClassStudent.class_id == class_subject.class_id, ClassStudent.status == "ATIVO")
        .order_by(Student.name)
    ).scalars().all()

    present_by_student = {}
    if session_ids:
        present_by_student = dict(db.execute(
            select(AttendanceRecord.student_id, func.count(AttendanceRecord.id))
            .where(
                AttendanceRecord.session_id.in_(session_ids),
                AttendanceRecord.final_status == AttendanceStatus.PRESENTE.value,
            )
            .group_by(AttendanceRecord.student_id)
        ).all())

    total_sessions = len(session_ids)
    rates = []
    for student in students:
        present = present_by_student.get(student.id, 0)
        pct = round(present / total_sessions * 100, 1) if total_sessions else None
        rates.append(StudentAttendanceRate(
            student_id=student.id,
            name=student.name,
            enrollment=student.enrollment,
            present_sessions=present,
            attendance_pct=pct,
            at_risk=pct is not None and pct < min_pct,
        ))

    return AttendanceSummary(
        class_subject_id=class_subject.id,
        class_id=class_subject.class_id,
        subject_id=class_subject.subject_id,
        total_sessions=total_sessions,
        min_attendance_pct=min_pct,
        at_risk_count=sum(1 for r in rates if r.at_risk),
        students=rates,
    )
