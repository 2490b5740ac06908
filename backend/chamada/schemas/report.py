"""
Schémas Pydantic pour les rapports : pourcentages de fréquence et liens de preuves.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class StudentAttendanceRate(BaseModel):
    student_id: uuid.UUID
    name: str
    enrollment: str
    present_sessions: int
    attendance_pct: Optional[float]  # None si aucune session clôturée
    at_risk: bool


class AttendanceSummary(BaseModel):
    """Fréquence par élève pour une discipline (consommé par les notifications externes)."""
    class_subject_id: uuid.UUID
    class_id: uuid.UUID
    subject_id: uuid.UUID
    total_sessions: int
    min_attendance_pct: float
    at_risk_count: int
    students: List[StudentAttendanceRate]


class EvidenceLinks(BaseModel):
    """Liens signés à durée limitée vers les preuves d'un enregistrement."""
    record_id: uuid.UUID
    selfie_url: Optional[str] = None
    signature_url: Optional[str] = None
    expires_at: datetime
