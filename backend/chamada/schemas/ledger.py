"""
Schémas Pydantic pour la saisie manuelle des présences (liste d'appel).
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from chamada.models.enums import AttendanceStatus, CaptureSource, SessionStatus

MAX_CHANGES_PER_COMMIT = 500


class RosterEntry(BaseModel):
    """Élève inscrit à la classe avec son enregistrement courant (status None = sans enregistrement)."""
    student_id: uuid.UUID
    name: str
    enrollment: str
    record_id: Optional[uuid.UUID] = None
    status: Optional[AttendanceStatus] = None
    source: Optional[CaptureSource] = None
    registered_at: Optional[datetime] = None
    needs_review: bool = False
    staged_status: Optional[AttendanceStatus] = None  # Changement en attente de validation

    @property
    def effective_status(self) -> Optional[AttendanceStatus]:
        return self.staged_status or self.status


class RosterResponse(BaseModel):
    """Liste d'appel complète d'une session avec les totaux."""
    session_id: uuid.UUID
    session_status: SessionStatus
    total: int
    present: int
    absent: int
    excused: int
    unrecorded: int  # Ni enregistrement ni changement en attente : distinct de FALTA
    students: List[RosterEntry]


class StatusChange(BaseModel):
    """Un changement de statut demandé pour un élève."""
    student_id: uuid.UUID
    status: AttendanceStatus
    justification: Optional[str] = None  # Reprise dans le journal si l'enregistrement existait


class ManualAttendanceCommit(BaseModel):
    """
    Corps de la saisie manuelle.
    mark_all est appliqué en premier (« tous présents / tous absents »),
    puis les changements individuels le remplacent élève par élève.
    """
    mark_all: Optional[AttendanceStatus] = None
    changes: List[StatusChange] = []

    @field_validator("changes")
    @classmethod
    def changes_not_too_large(cls, v: List[StatusChange]) -> List[StatusChange]:
        if len(v) > MAX_CHANGES_PER_COMMIT:
            raise ValueError(f"Lot trop grand : maximum {MAX_CHANGES_PER_COMMIT} changements par requête.")
        return v


class LedgerCommitResult(BaseModel):
    """Rapport de la saisie : les écritures réussies ne sont jamais annulées."""
    session_id: uuid.UUID
    succeeded: int
    failed: int
    first_error: Optional[str] = None
    failed_student_ids: List[uuid.UUID] = []  # À renvoyer tels quels pour réessayer
    roster: Optional[RosterResponse] = None    # Liste relue après les écritures
