"""
Schémas Pydantic pour le suivi en direct des sessions (polling).
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from chamada.models.enums import SessionStatus


class LiveSession(BaseModel):
    """Session ouverte (ou récemment clôturée) avec ses compteurs au dernier poll."""
    id: uuid.UUID
    class_id: uuid.UUID
    subject_id: uuid.UUID
    class_code: Optional[str]
    subject_name: Optional[str]
    status: SessionStatus
    opened_at: datetime
    closed_at: Optional[datetime]
    require_geo: bool
    geo_radius_m: Optional[int]
    public_token: str
    present_count: int
    absent_count: int
    total_count: int
    elapsed_seconds: int   # Calculé côté serveur au moment du poll
    elapsed_display: str   # MM:SS ou H:MM:SS


class LiveMonitorResponse(BaseModel):
    """Instantané renvoyé à chaque poll ; le client incrémente elapsed localement entre deux polls."""
    professor_user_id: uuid.UUID
    sessions: List[LiveSession]
    poll_interval_seconds: int
    generated_at: datetime
