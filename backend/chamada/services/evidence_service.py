"""
Liens signés à durée limitée vers les preuves (selfie, signature) d'un enregistrement.

Les chemins restent privés dans le stockage ; le lien porte une expiration et
une signature HMAC-SHA256 que le serveur de fichiers vérifie avec verify_signature().
"""

import base64
import hashlib
import hmac
import time
import uuid
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from sqlalchemy.orm import Session

from chamada.config import settings
from chamada.schemas.report import EvidenceLinks
from chamada.security import Actor
from chamada.services import review_service


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _sign(path: str, expires: int) -> str:
    digest = hmac.new(
        settings.SECRET_KEY.encode("utf-8"),
        f"{path}:{expires}".encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return _b64url_encode(digest)


def sign_path(path: str, expires: int) -> str:
    """URL de téléchargement valable jusqu'au timestamp Unix `expires`."""
    return f"{settings.EVIDENCE_BASE_URL.rstrip('/')}/{quote(path.lstrip('/'))}?expires={expires}&signature={_sign(path, expires)}"


def verify_signature(path: str, expires: int, signature: str, now: Optional[int] = None) -> bool:
    now = int(time.time()) if now is None else now
    if expires < now:
        return False
    return hmac.compare_digest(signature or "", _sign(path, expires))


def get_evidence_links(
    db: Session, record_id: uuid.UUID, actor: Actor, now: Optional[int] = None,
) -> EvidenceLinks:
    """Liens vers la selfie et la signature (None si la preuve est absente)."""
    record, _ = review_service.load_record_for_review(db, record_id, actor)
    now = int(time.time()) if now is None else now
    expires = now + settings.EVIDENCE_URL_TTL_SECONDS

    return EvidenceLinks(
        record_id=record.id,
        selfie_url=sign_path(record.selfie_path, expires) if record.selfie_path else None,
        signature_url=sign_path(record.signature_path, expires) if record.signature_path else None,
        expires_at=datetime.fromtimestamp(expires, tz=timezone.utc),
    )
