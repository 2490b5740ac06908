"""
Schémas Pydantic pour la révision d'intégrité des présences :
file needs_review, alertes d'appareil dupliqué, approbation / refus.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from chamada.models.enums import AttendanceStatus, GeoEvidence, SessionStatus


class EvidenceBadges(BaseModel):
    """Indicateurs de preuve dérivés d'un enregistrement (affichés comme badges)."""
    has_selfie: bool
    has_signature: bool
    geolocation: GeoEvidence
    distance_m: Optional[float] = None        # Distance au centre du géofence, si calculable
    fingerprint_short: Optional[str] = None   # Empreinte tronquée pour l'affichage


class ReviewItem(BaseModel):
    """Enregistrement signalé par le processus d'enregistrement élève."""
    record_id: uuid.UUID
    session_id: uuid.UUID
    student_id: uuid.UUID
    student_name: str
    student_enrollment: str
    class_code: Optional[str]
    subject_name: Optional[str]
    final_status: AttendanceStatus
    registered_at: Optional[datetime]
    protocol: str
    session_status: SessionStatus
    read_only: bool = False  # Session en audit finalisé : plus de décision possible
    reasons: List[str]
    evidence: EvidenceBadges
    ip_address: Optional[str]
    user_agent: Optional[str]


class ReviewQueue(BaseModel):
    """File de révision ; limitée aux premiers éléments sauf si show_all est demandé."""
    total: int
    has_more: bool
    items: List[ReviewItem]


class DuplicateRecord(BaseModel):
    record_id: uuid.UUID
    student_id: uuid.UUID
    student_name: str
    student_enrollment: str
    final_status: AttendanceStatus
    registered_at: Optional[datetime]
    geolocation: GeoEvidence


class DuplicateGroup(BaseModel):
    """Plusieurs enregistrements d'une même session soumis depuis le même appareil."""
    session_id: uuid.UUID
    fingerprint: str
    fingerprint_short: str
    class_code: Optional[str]
    subject_name: Optional[str]
    records: List[DuplicateRecord]


class DuplicateDeviceReport(BaseModel):
    total_groups: int
    groups: List[DuplicateGroup]


class ReviewDecision(BaseModel):
    """Justification facultative : vide → note par défaut dans le journal."""
    justification: Optional[str] = None


class ReviewDecisionResult(BaseModel):
    record_id: uuid.UUID
    from_status: AttendanceStatus
    final_status: AttendanceStatus
    needs_review: bool
    adjustment_id: Optional[uuid.UUID] = None  # None si le statut n'a pas changé
