"""
Schémas Pydantic pour les sessions de présence (ouverture, clôture, réouverture).
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from chamada.models.enums import SessionStatus


class GeofenceIn(BaseModel):
    """Position du professeur au moment de l'ouverture (centre du géofence)."""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class SessionOpen(BaseModel):
    """Données nécessaires pour ouvrir une chamada."""
    class_subject_id: uuid.UUID
    lesson_entry_id: Optional[uuid.UUID] = None
    geofence: Optional[GeofenceIn] = None  # None = pas de contrôle de localisation


class SessionClose(BaseModel):
    """Corps optionnel de la clôture : le jeton de clôture, s'il est fourni, doit être valide."""
    close_token: Optional[str] = None

    @field_validator("close_token")
    @classmethod
    def close_token_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le jeton de clôture ne peut pas être vide.")
        return v.strip().upper() if v is not None else None


class SessionResponse(BaseModel):
    """Session telle que renvoyée par l'API (jamais les hashes)."""
    id: uuid.UUID
    class_id: uuid.UUID
    subject_id: uuid.UUID
    professor_user_id: uuid.UUID
    lesson_entry_id: Optional[uuid.UUID]
    opened_at: datetime
    closed_at: Optional[datetime]
    status: SessionStatus
    public_token: str
    require_geo: bool
    geo_lat: Optional[float]
    geo_lng: Optional[float]
    geo_radius_m: Optional[int]

    model_config = {"from_attributes": True}


class SessionOpened(SessionResponse):
    """
    Réponse à l'ouverture : contient les codes en clair.
    Ils ne sont plus jamais récupérables ensuite (seuls les hashes sont stockés).
    """
    entry_code: str
    close_token: str
