"""
Saisie manuelle des présences par le professeur ou la coordination.

Fonctionnement :
- load_roster() : élèves ATIVO de la classe + enregistrement courant (None = sans enregistrement)
- set_status() / set_all_status() : changements mis en attente, rien n'est écrit
- commit() : chaque changement est une écriture indépendante (son propre commit)

Pas de transaction globale : un échec n'annule pas les écritures réussies.
Les changements en échec restent en attente et peuvent être renvoyés seuls.
"""

import logging
import secrets
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chamada.exceptions import PartialBatchFailure, ValidationError
from chamada.models.attendance_record import AttendanceRecord
from chamada.models.attendance_session import AttendanceSession
from chamada.models.enums import AttendanceStatus, CaptureSource, SessionStatus
from chamada.models.school_class import ClassStudent
from chamada.models.student import Student
from chamada.schemas.ledger import LedgerCommitResult, ManualAttendanceCommit, RosterEntry, RosterResponse
from chamada.security import Actor
from chamada.services import adjustment_service, session_service

logger = logging.getLogger(__name__)


def generate_protocol() -> str:
    """Reçu lisible : PRES- suivi de 10 caractères hexadécimaux majuscules."""
    return f"PRES-{secrets.token_hex(5).upper()}"


class AttendanceLedger:
    """Liste d'appel d'une session et ses changements en attente."""

    def __init__(self, db: Session, session: AttendanceSession, actor: Actor):
        self.db = db
        self.session = session
        self.actor = actor
        self._roster: Dict[uuid.UUID, RosterEntry] = {}
        self._staged: Dict[uuid.UUID, AttendanceStatus] = {}

    @classmethod
    def for_session(cls, db: Session, session_id: uuid.UUID, actor: Actor) -> "AttendanceLedger":
        session = session_service.load_session(db, session_id)
        session_service.ensure_can_manage(session, actor)
        return cls(db, session, actor)

    @property
    def staged(self) -> Dict[uuid.UUID, AttendanceStatus]:
        return dict(self._staged)

    @property
    def source(self) -> CaptureSource:
        return CaptureSource.MANUAL_COORD if self.actor.is_staff else CaptureSource.MANUAL_PROF

    def load_roster(self) -> RosterResponse:
        """Relit les élèves inscrits et leurs enregistrements, triés par nom."""
        rows = self.db.execute(
            select(Student, AttendanceRecord)
            .join(ClassStudent, ClassStudent.student_id == Student.id)
            .outerjoin(
                AttendanceRecord,
                and_(
                    AttendanceRecord.student_id == Student.id,
                    AttendanceRecord.session_id == self.session.id,
                ),
            )
            .where(ClassStudent.class_id == self.session.class_id, ClassStudent.status == "ATIVO")
            .order_by(Student.name)
        ).all()

        self._roster = {}
        for student, record in rows:
            self._roster[student.id] = RosterEntry(
                student_id=student.id,
                name=student.name,
                enrollment=student.enrollment,
                record_id=record.id if record else None,
                status=record.final_status if record else None,
                source=record.source if record else None,
                registered_at=record.registered_at if record else None,
                needs_review=bool(record.needs_review) if record else False,
            )
        return self.roster()

    def roster(self) -> RosterResponse:
        """Vue courante de la liste d'appel, changements en attente inclus."""
        students: List[RosterEntry] = []
        counts = {AttendanceStatus.PRESENTE: 0, AttendanceStatus.FALTA: 0, AttendanceStatus.JUSTIFICADO: 0}
        unrecorded = 0
        for student_id, entry in self._roster.items():
            entry = entry.model_copy(update={"staged_status": self._staged.get(student_id)})
            status = entry.effective_status
            if status is None:
                unrecorded += 1
            else:
                counts[status] += 1
            students.append(entry)

        return RosterResponse(
            session_id=self.session.id,
            session_status=self.session.status,
            total=len(students),
            present=counts[AttendanceStatus.PRESENTE],
            absent=counts[AttendanceStatus.FALTA],
            excused=counts[AttendanceStatus.JUSTIFICADO],
            unrecorded=unrecorded,
            students=students,
        )

    def set_status(self, student_id: uuid.UUID, status: AttendanceStatus) -> None:
        self._ensure_editable()
        if student_id not in self._roster:
            raise ValidationError(f"L'élève {student_id} n'est pas inscrit dans la classe de cette session.")
        self._staged[student_id] = AttendanceStatus(status)

    def set_all_status(self, status: AttendanceStatus) -> None:
        """« Tous présents » / « tous absents » : met le statut en attente pour chaque élève."""
        self._ensure_editable()
        status = AttendanceStatus(status)
        for student_id in self._roster:
            self._staged[student_id] = status

    def commit(self, justifications: Optional[Dict[uuid.UUID, str]] = None) -> LedgerCommitResult:
        """
        Écrit chaque changement en attente, un par un.

        - Enregistrement existant : nouveau final_status (source inchangée),
          + une entrée de journal si le statut change réellement
        - Pas d'enregistrement : insertion MANUAL_PROF / MANUAL_COORD, sans journal
        - Échec : rollback de cette écriture seule, on passe à la suivante

        Lève PartialBatchFailure (avec le rapport) si au moins une écriture échoue.
        """
        self._ensure_editable()
        justifications = justifications or {}
        succeeded = 0
        failed_ids: List[uuid.UUID] = []
        first_error: Optional[str] = None

        for student_id, status in list(self._staged.items()):
            try:
                self._write(student_id, status, justifications.get(student_id))
                self.db.commit()
            except SQLAlchemyError as exc:
                self.db.rollback()
                message = str(exc).splitlines()[0]
                logger.warning(
                    "Écriture refusée pour la session %s, élève %s : %s", self.session.id, student_id, message,
                )
                failed_ids.append(student_id)
                first_error = first_error or message
                continue
            del self._staged[student_id]
            succeeded += 1

        result = LedgerCommitResult(
            session_id=self.session.id,
            succeeded=succeeded,
            failed=len(failed_ids),
            first_error=first_error,
            failed_student_ids=failed_ids,
            roster=self._reload_roster(),
        )
        logger.info(
            "Saisie manuelle session %s par %s : %d réussie(s), %d échec(s)",
            self.session.id, self.actor.id, result.succeeded, result.failed,
        )
        if failed_ids:
            raise PartialBatchFailure(result)
        return result

    def _reload_roster(self) -> Optional[RosterResponse]:
        """Relecture après écriture ; None si elle échoue, les écritures faites restent acquises."""
        try:
            return self.load_roster()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Relecture de la liste d'appel impossible pour la session %s : %s", self.session.id, exc)
            return None

    def _write(self, student_id: uuid.UUID, status: AttendanceStatus, justification: Optional[str]) -> None:
        record = self.db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.session_id == self.session.id,
                AttendanceRecord.student_id == student_id,
            )
        ).scalar_one_or_none()

        if record is None:
            self.db.add(AttendanceRecord(
                id=uuid.uuid4(),
                session_id=self.session.id,
                student_id=student_id,
                final_status=status.value,
                source=self.source.value,
                registered_at=datetime.now(timezone.utc),
                needs_review=False,
                protocol=generate_protocol(),
            ))
            return

        if record.final_status == status:
            logger.debug("Élève %s déjà %s, rien à écrire", student_id, status.value)
            return

        from_status = AttendanceStatus(record.final_status)
        record.final_status = status.value
        adjustment_service.record_adjustment(
            self.db, record, from_status, status, self.actor, justification,
        )

    def _ensure_editable(self) -> None:
        if self.session.status == SessionStatus.AUDITORIA_FINALIZADA:
            raise ValidationError("Session en audit finalisé : la liste d'appel n'est plus modifiable.")


def load_roster(db: Session, session_id: uuid.UUID, actor: Actor) -> RosterResponse:
    return AttendanceLedger.for_session(db, session_id, actor).load_roster()


def commit_manual_attendance(
    db: Session,
    session_id: uuid.UUID,
    actor: Actor,
    payload: ManualAttendanceCommit,
) -> LedgerCommitResult:
    """
    Applique mark_all puis les changements individuels, et écrit le tout.
    Un élève inconnu est refusé avant toute écriture.
    """
    ledger = AttendanceLedger.for_session(db, session_id, actor)
    ledger.load_roster()
    if payload.mark_all is not None:
        ledger.set_all_status(payload.mark_all)
    for change in payload.changes:
        ledger.set_status(change.student_id, change.status)

    justifications = {c.student_id: c.justification for c in payload.changes if c.justification}
    return ledger.commit(justifications)
