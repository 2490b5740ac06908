"""
Tests unitaires pour la saisie manuelle des présences.
Couverture : AttendanceLedger (load_roster, set_status, set_all_status, commit),
load_roster, commit_manual_attendance, generate_protocol.
"""

import re
import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from chamada.exceptions import PartialBatchFailure, ValidationError
from chamada.models.attendance_adjustment import AttendanceAdjustment
from chamada.models.attendance_record import AttendanceRecord
from chamada.models.attendance_session import AttendanceSession
from chamada.models.enums import AttendanceStatus
from chamada.models.student import Student
from chamada.schemas.ledger import ManualAttendanceCommit, StatusChange
from chamada.services.ledger_service import (
    AttendanceLedger,
    commit_manual_attendance,
    generate_protocol,
    load_roster,
)

from conftest import PROFESSOR_ID


# ----------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------

def make_session(status="ABERTA"):
    s = MagicMock(spec=AttendanceSession)
    s.id = uuid.uuid4()
    s.class_id = uuid.uuid4()
    s.professor_user_id = PROFESSOR_ID
    s.status = status
    return s


def make_student(name):
    st = MagicMock(spec=Student)
    st.id = uuid.uuid4()
    st.name = name
    st.enrollment = f"MAT-{name[:3].upper()}"
    return st


def make_record(session, student, status="FALTA", source="AUTO_ALUNO"):
    r = MagicMock(spec=AttendanceRecord)
    r.id = uuid.uuid4()
    r.session_id = session.id
    r.student_id = student.id
    r.final_status = status
    r.source = source
    r.registered_at = datetime(2026, 3, 10, 8, 5, tzinfo=timezone.utc)
    r.needs_review = False
    return r


class FakeStore:
    """
    DB mock qui garde les enregistrements par élève :
    - la requête de liste d'appel renvoie (élève, enregistrement ou None)
    - la recherche d'un enregistrement renvoie celui de l'élève demandé
    - db.add d'un AttendanceRecord le rend visible aux lectures suivantes
    """

    def __init__(self, session, students, records=None, fail_for=()):
        self.session = session
        self.students = students
        self.records = {r.student_id: r for r in (records or [])}
        self.fail_for = set(fail_for)
        self.fail_roster = False
        self.db = MagicMock()
        self.db.get.return_value = session
        self.db.execute.side_effect = self._execute
        self.db.add.side_effect = self._add

    def _execute(self, stmt):
        result = MagicMock()
        if "class_students" in str(stmt):
            if self.fail_roster:
                raise OperationalError("SELECT", {}, Exception("relecture impossible"))
            result.all.return_value = [(s, self.records.get(s.id)) for s in self.students]
            return result
        params = stmt.compile().params
        student_id = next((v for k, v in params.items() if k.startswith("student_id")), None)
        if student_id is None:
            # Recherche d'une autre session ouverte (réouverture)
            result.scalar.return_value = None
            return result
        if student_id in self.fail_for:
            raise OperationalError("SELECT", {}, Exception("connexion perdue"))
        result.scalar_one_or_none.return_value = self.records.get(student_id)
        return result

    def _add(self, obj):
        if isinstance(obj, AttendanceRecord):
            self.records[obj.student_id] = obj

    def added(self, cls):
        return [c.args[0] for c in self.db.add.call_args_list if isinstance(c.args[0], cls)]


def make_ledger(store, actor):
    return AttendanceLedger.for_session(store.db, store.session.id, actor)


# ----------------------------------------------------------------
# load_roster
# ----------------------------------------------------------------

class TestLoadRoster:
    def test_eleves_avec_et_sans_enregistrement(self, professor):
        session = make_session()
        ana, bruno, carla = make_student("Ana"), make_student("Bruno"), make_student("Carla")
        store = FakeStore(session, [ana, bruno, carla], [
            make_record(session, ana, "PRESENTE"),
            make_record(session, bruno, "FALTA"),
        ])

        roster = load_roster(store.db, session.id, professor)

        assert roster.total == 3
        assert roster.present == 1
        assert roster.absent == 1
        assert roster.unrecorded == 1
        assert [e.name for e in roster.students] == ["Ana", "Bruno", "Carla"]
        assert roster.students[2].status is None
        assert roster.students[2].record_id is None

    def test_sans_enregistrement_distinct_de_falta(self, professor):
        session = make_session()
        store = FakeStore(session, [make_student("Ana")])
        roster = load_roster(store.db, session.id, professor)
        assert roster.absent == 0
        assert roster.unrecorded == 1

    def test_requete_limitee_aux_eleves_ativo(self, professor):
        session = make_session()
        store = FakeStore(session, [])
        load_roster(store.db, session.id, professor)
        sql = str(store.db.execute.call_args_list[0].args[0])
        assert "class_students.status" in sql
        assert "ORDER BY students.name" in sql


# ----------------------------------------------------------------
# set_status / set_all_status
# ----------------------------------------------------------------

class TestStaging:
    def test_set_status_met_en_attente_sans_ecrire(self, professor):
        session = make_session()
        ana = make_student("Ana")
        store = FakeStore(session, [ana])
        ledger = make_ledger(store, professor)
        ledger.load_roster()

        ledger.set_status(ana.id, AttendanceStatus.PRESENTE)

        assert ledger.staged == {ana.id: AttendanceStatus.PRESENTE}
        store.db.commit.assert_not_called()
        assert ledger.roster().students[0].staged_status == AttendanceStatus.PRESENTE
        assert ledger.roster().present == 1

    def test_set_status_eleve_inconnu_leve_erreur(self, professor):
        session = make_session()
        store = FakeStore(session, [make_student("Ana")])
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        with pytest.raises(ValidationError):
            ledger.set_status(uuid.uuid4(), AttendanceStatus.PRESENTE)

    def test_set_all_status_tous_les_eleves(self, professor):
        session = make_session()
        students = [make_student(n) for n in ("Ana", "Bruno", "Carla")]
        store = FakeStore(session, students)
        ledger = make_ledger(store, professor)
        ledger.load_roster()

        ledger.set_all_status(AttendanceStatus.FALTA)

        assert set(ledger.staged) == {s.id for s in students}
        roster = ledger.roster()
        assert roster.absent == 3
        assert roster.unrecorded == 0

    def test_audit_finalise_refuse(self, professor):
        session = make_session("AUDITORIA_FINALIZADA")
        ana = make_student("Ana")
        store = FakeStore(session, [ana])
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        with pytest.raises(ValidationError):
            ledger.set_status(ana.id, AttendanceStatus.PRESENTE)
        with pytest.raises(ValidationError):
            ledger.commit()


# ----------------------------------------------------------------
# commit
# ----------------------------------------------------------------

class TestCommit:
    def test_insertion_manual_prof_sans_journal(self, professor):
        session = make_session()
        ana = make_student("Ana")
        store = FakeStore(session, [ana])
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        ledger.set_status(ana.id, AttendanceStatus.PRESENTE)

        result = ledger.commit()

        inserted = store.added(AttendanceRecord)
        assert len(inserted) == 1
        assert inserted[0].source == "MANUAL_PROF"
        assert inserted[0].final_status == "PRESENTE"
        assert inserted[0].registered_at is not None
        assert re.fullmatch(r"PRES-[0-9A-F]{10}", inserted[0].protocol)
        assert store.added(AttendanceAdjustment) == []
        assert result.succeeded == 1 and result.failed == 0
        assert ledger.staged == {}

    def test_insertion_par_coordination_manual_coord(self, coordinator):
        session = make_session()
        ana = make_student("Ana")
        store = FakeStore(session, [ana])
        ledger = make_ledger(store, coordinator)
        ledger.load_roster()
        ledger.set_status(ana.id, AttendanceStatus.JUSTIFICADO)
        ledger.commit()
        assert store.added(AttendanceRecord)[0].source == "MANUAL_COORD"

    def test_mise_a_jour_avec_journal(self, professor):
        session = make_session()
        ana = make_student("Ana")
        record = make_record(session, ana, "FALTA", source="AUTO_ALUNO")
        store = FakeStore(session, [ana], [record])
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        ledger.set_status(ana.id, AttendanceStatus.PRESENTE)

        ledger.commit({ana.id: "Chegou atrasada"})

        assert record.final_status == "PRESENTE"
        assert record.source == "AUTO_ALUNO"
        adjustments = store.added(AttendanceAdjustment)
        assert len(adjustments) == 1
        assert adjustments[0].from_status == "FALTA"
        assert adjustments[0].to_status == "PRESENTE"
        assert adjustments[0].justification == "Chegou atrasada"
        assert adjustments[0].changed_by_user_id == PROFESSOR_ID
        assert adjustments[0].changed_by_role == "professor"

    def test_meme_statut_sans_journal(self, professor):
        session = make_session()
        ana = make_student("Ana")
        store = FakeStore(session, [ana], [make_record(session, ana, "PRESENTE")])
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        ledger.set_status(ana.id, AttendanceStatus.PRESENTE)

        result = ledger.commit()

        assert result.succeeded == 1
        assert store.added(AttendanceAdjustment) == []

    def test_une_ecriture_par_eleve(self, professor):
        session = make_session()
        students = [make_student(n) for n in ("Ana", "Bruno", "Carla")]
        store = FakeStore(session, students)
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        ledger.set_all_status(AttendanceStatus.PRESENTE)

        ledger.commit()

        assert store.db.commit.call_count == 3

    def test_echec_partiel_conserve_les_reussites(self, professor):
        session = make_session()
        students = [make_student(n) for n in ("Ana", "Bruno", "Carla")]
        store = FakeStore(session, students, fail_for={students[1].id})
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        ledger.set_all_status(AttendanceStatus.PRESENTE)

        with pytest.raises(PartialBatchFailure) as exc_info:
            ledger.commit()

        result = exc_info.value.result
        assert result.succeeded == 2
        assert result.failed == 1
        assert result.failed_student_ids == [students[1].id]
        assert "connexion perdue" in result.first_error
        store.db.rollback.assert_called_once()
        assert set(store.records) == {students[0].id, students[2].id}
        assert result.roster.students[1].status is None
        assert result.roster.students[1].staged_status == AttendanceStatus.PRESENTE

    def test_echecs_restent_en_attente_et_seuls_renvoyes(self, professor):
        session = make_session()
        students = [make_student(n) for n in ("Ana", "Bruno", "Carla")]
        store = FakeStore(session, students, fail_for={students[1].id})
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        ledger.set_all_status(AttendanceStatus.PRESENTE)
        with pytest.raises(PartialBatchFailure):
            ledger.commit()

        assert ledger.staged == {students[1].id: AttendanceStatus.PRESENTE}

        store.fail_for.clear()
        store.db.commit.reset_mock()
        result = ledger.commit()

        assert result.succeeded == 1 and result.failed == 0
        assert store.db.commit.call_count == 1
        assert len(store.added(AttendanceRecord)) == 3

    def test_relecture_en_echec_garde_le_bilan(self, professor):
        session = make_session()
        students = [make_student(n) for n in ("Ana", "Bruno")]
        store = FakeStore(session, students)
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        ledger.set_all_status(AttendanceStatus.PRESENTE)
        store.fail_roster = True

        result = ledger.commit()

        assert result.succeeded == 2
        assert result.failed == 0
        assert result.roster is None
        assert store.db.commit.call_count == 2
        store.db.rollback.assert_called_once()

    def test_relecture_en_echec_apres_echec_partiel(self, professor):
        session = make_session()
        students = [make_student(n) for n in ("Ana", "Bruno")]
        store = FakeStore(session, students, fail_for={students[0].id})
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        ledger.set_all_status(AttendanceStatus.PRESENTE)
        store.fail_roster = True

        with pytest.raises(PartialBatchFailure) as exc_info:
            ledger.commit()

        assert exc_info.value.result.succeeded == 1
        assert exc_info.value.result.failed_student_ids == [students[0].id]
        assert exc_info.value.result.roster is None

    def test_renvoi_du_lot_complet_idempotent(self, professor):
        session = make_session()
        students = [make_student(n) for n in ("Ana", "Bruno")]
        store = FakeStore(session, students)
        ledger = make_ledger(store, professor)
        ledger.load_roster()
        ledger.set_all_status(AttendanceStatus.PRESENTE)
        ledger.commit()

        ledger.set_all_status(AttendanceStatus.PRESENTE)
        ledger.commit()

        assert len(store.added(AttendanceRecord)) == 2
        assert store.added(AttendanceAdjustment) == []


# ----------------------------------------------------------------
# commit_manual_attendance
# ----------------------------------------------------------------

def test_mark_all_puis_changements_individuels(professor):
    session = make_session()
    students = [make_student(n) for n in ("Ana", "Bruno", "Carla")]
    store = FakeStore(session, students)
    payload = ManualAttendanceCommit(
        mark_all=AttendanceStatus.PRESENTE,
        changes=[StatusChange(student_id=students[2].id, status=AttendanceStatus.FALTA)],
    )

    result = commit_manual_attendance(store.db, session.id, professor, payload)

    assert result.succeeded == 3
    assert store.records[students[0].id].final_status == "PRESENTE"
    assert store.records[students[2].id].final_status == "FALTA"
    assert result.roster.present == 2 and result.roster.absent == 1


def test_eleve_inconnu_refuse_avant_toute_ecriture(professor):
    session = make_session()
    store = FakeStore(session, [make_student("Ana")])
    payload = ManualAttendanceCommit(
        mark_all=AttendanceStatus.PRESENTE,
        changes=[StatusChange(student_id=uuid.uuid4(), status=AttendanceStatus.FALTA)],
    )
    with pytest.raises(ValidationError):
        commit_manual_attendance(store.db, session.id, professor, payload)
    store.db.commit.assert_not_called()


def test_lot_trop_grand_refuse():
    changes = [{"student_id": str(uuid.uuid4()), "status": "PRESENTE"} for _ in range(501)]
    with pytest.raises(ValueError):
        ManualAttendanceCommit(changes=changes)


def test_protocole_format():
    assert re.fullmatch(r"PRES-[0-9A-F]{10}", generate_protocol())
