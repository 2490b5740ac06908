"""
Identification de l'acteur à partir d'un jeton Bearer JWT (HS256).

Le jeton est émis par le service d'authentification de l'établissement ;
ici on se contente de le vérifier et d'en extraire l'utilisateur et son rôle.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Header, HTTPException
from pydantic import BaseModel

from chamada.config import settings
from chamada.models.enums import STAFF_ROLES, ActorRole

logger = logging.getLogger(__name__)


class Actor(BaseModel):
    """Utilisateur authentifié qui agit sur une session ou un enregistrement."""
    id: uuid.UUID
    role: ActorRole

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def create_access_token(user_id: uuid.UUID, role: ActorRole, expires_minutes: Optional[int] = None) -> str:
    """Émet un jeton signé (outillage de développement et tests d'intégration)."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {"sub": str(user_id), "role": role.value, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[Actor]:
    """Retourne l'acteur du jeton, ou None si le jeton est invalide, expiré ou incomplet."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.debug("Jeton refusé : %s", exc)
        return None

    try:
        return Actor(id=uuid.UUID(str(payload.get("sub"))), role=ActorRole(payload.get("role")))
    except ValueError:
        return None


def get_current_actor(authorization: Optional[str] = Header(default=None)) -> Actor:
    """Dépendance FastAPI — 401 si l'en-tête Authorization est absent ou invalide."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Jeton d'authentification manquant.")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Schéma d'authentification invalide.")

    actor = decode_access_token(token.strip())
    if actor is None:
        raise HTTPException(status_code=401, detail="Jeton invalide ou expiré.")
    return actor
