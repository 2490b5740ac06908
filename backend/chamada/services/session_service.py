"""
Service métier du cycle de vie des sessions de présence.

Machine à états : ABERTA → ENCERRADA → ABERTA (réouverture) → ENCERRADA → …
AUDITORIA_FINALIZADA est posé par l'audit externe ; la session n'est alors plus modifiable.

Règle : une seule session ABERTA par professeur. Vérifiée avant écriture,
puis garantie par l'index unique partiel uq_attendance_sessions_open_professor
(deux ouvertures simultanées depuis deux onglets : la seconde échoue au commit).
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from chamada.config import settings
from chamada.exceptions import (
    NotFoundError,
    OpenSessionExistsError,
    PermissionDeniedError,
    TransientIOError,
    ValidationError,
)
from chamada.models.attendance_session import AttendanceSession
from chamada.models.enums import ActorRole, SessionStatus
from chamada.models.school_class import ClassSubject
from chamada.schemas.session import SessionOpen, SessionOpened, SessionResponse
from chamada.security import Actor
from chamada.services import qr_service, secret_codex

logger = logging.getLogger(__name__)


def ensure_can_manage(session: AttendanceSession, actor: Actor) -> None:
    """Le professeur propriétaire ou un rôle de coordination ; sinon PermissionDeniedError."""
    if actor.is_staff:
        return
    if actor.role == ActorRole.PROFESSOR and session.professor_user_id == actor.id:
        return
    raise PermissionDeniedError("Action réservée au professeur de la session ou à la coordination.")


def resolve_professor_scope(actor: Actor, professor_user_id: Optional[uuid.UUID] = None) -> uuid.UUID:
    """
    Professeur dont on consulte les sessions : soi-même par défaut.
    Seule la coordination peut consulter un autre professeur.
    """
    if professor_user_id is None or professor_user_id == actor.id:
        if not actor.is_staff and actor.role != ActorRole.PROFESSOR:
            raise PermissionDeniedError("Consultation réservée aux professeurs et à la coordination.")
        return actor.id
    if not actor.is_staff:
        raise PermissionDeniedError("Seule la coordination peut consulter les sessions d'un autre professeur.")
    return professor_user_id


def load_session(db: Session, session_id: uuid.UUID) -> AttendanceSession:
    """Retourne la session ou lève NotFoundError."""
    session = db.get(AttendanceSession, session_id)
    if session is None:
        raise NotFoundError(f"Session {session_id} introuvable.")
    return session


def open_session(db: Session, data: SessionOpen, actor: Actor) -> SessionOpened:
    """
    Ouvre une chamada pour une discipline d'une classe.

    Étapes :
    1. Résoudre le contexte classe/discipline (ValidationError sinon)
    2. Déterminer le professeur (l'acteur, ou le titulaire si la coordination ouvre pour lui)
    3. Refuser si ce professeur a déjà une session ABERTA
    4. Générer code d'entrée + jeton de clôture, ne stocker que leurs hashes
    5. Géofence : position du professeur + rayon par défaut, si demandé

    Les codes en clair ne sont renvoyés qu'ici, une seule fois.
    """
    class_subject = db.get(ClassSubject, data.class_subject_id)
    if class_subject is None or class_subject.class_id is None or class_subject.subject_id is None:
        raise ValidationError("Classe ou discipline introuvable : impossible d'ouvrir la chamada.")

    if actor.is_staff:
        professor_id = class_subject.professor_user_id
        if professor_id is None:
            raise ValidationError("Aucun professeur n'est rattaché à cette discipline.")
    elif actor.role == ActorRole.PROFESSOR:
        if class_subject.professor_user_id not in (None, actor.id):
            raise PermissionDeniedError("Vous n'enseignez pas cette discipline dans cette classe.")
        professor_id = actor.id
    else:
        raise PermissionDeniedError("Seuls les professeurs et la coordination peuvent ouvrir une chamada.")

    _ensure_no_other_open_session(db, professor_id)

    entry_code = secret_codex.generate_code(settings.ENTRY_CODE_LENGTH)
    close_token = secret_codex.generate_code(settings.CLOSE_TOKEN_LENGTH)

    session = AttendanceSession(
        id=uuid.uuid4(),
        class_id=class_subject.class_id,
        subject_id=class_subject.subject_id,
        professor_user_id=professor_id,
        lesson_entry_id=data.lesson_entry_id,
        opened_at=datetime.now(timezone.utc),
        closed_at=None,
        status=SessionStatus.ABERTA.value,
        entry_code_hash=secret_codex.hash_code(entry_code),
        close_token_hash=secret_codex.hash_code(close_token),
        public_token=secret_codex.generate_public_token(),
        require_geo=data.geofence is not None,
    )
    if data.geofence is not None:
        session.geo_lat = data.geofence.lat
        session.geo_lng = data.geofence.lng
        session.geo_radius_m = settings.DEFAULT_GEOFENCE_RADIUS_M

    db.add(session)
    try:
        db.commit()
    except IntegrityError:
        # Course entre deux ouvertures : l'index partiel a tranché
        db.rollback()
        raise OpenSessionExistsError(
            "Une chamada est déjà ouverte pour ce professeur. Clôturez-la avant d'en ouvrir une autre."
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Échec de l'ouverture de session : %s", exc)
        raise TransientIOError("Impossible d'enregistrer la session, réessayez.") from exc
    db.refresh(session)

    logger.info(
        "Session %s ouverte (classe %s, discipline %s, professeur %s, géofence=%s)",
        session.id, session.class_id, session.subject_id, professor_id, session.require_geo,
    )

    base = SessionResponse.model_validate(session)
    return SessionOpened(**base.model_dump(), entry_code=entry_code, close_token=close_token)


def close_session(
    db: Session,
    session_id: uuid.UUID,
    actor: Actor,
    close_token: Optional[str] = None,
) -> SessionResponse:
    """
    Clôture une session ABERTA → ENCERRADA et enregistre closed_at (UTC).

    Idempotent : une session déjà ENCERRADA est renvoyée telle quelle.
    Si un jeton de clôture est fourni, il doit correspondre au hash stocké.
    """
    session = load_session(db, session_id)
    ensure_can_manage(session, actor)

    if session.status == SessionStatus.AUDITORIA_FINALIZADA:
        raise ValidationError("Session en audit finalisé : elle ne peut plus être modifiée.")
    if close_token is not None and not secret_codex.verify_code(close_token, session.close_token_hash):
        logger.warning("Jeton de clôture refusé pour la session %s, acteur %s", session_id, actor.id)
        raise PermissionDeniedError("Jeton de clôture invalide.")
    if session.status == SessionStatus.ENCERRADA:
        logger.debug("Session %s déjà clôturée, rien à faire", session_id)
        return SessionResponse.model_validate(session)

    session.status = SessionStatus.ENCERRADA.value
    session.closed_at = datetime.now(timezone.utc)
    _commit_transition(db, session_id, "clôture")
    db.refresh(session)

    logger.info("Session %s clôturée par %s", session_id, actor.id)
    return SessionResponse.model_validate(session)


def reopen_session(db: Session, session_id: uuid.UUID, actor: Actor) -> SessionResponse:
    """
    Rouvre une session ENCERRADA → ABERTA (corrections, enregistrements tardifs).
    closed_at est effacé. Une session déjà ABERTA est renvoyée telle quelle.
    """
    session = load_session(db, session_id)
    ensure_can_manage(session, actor)

    if session.status == SessionStatus.AUDITORIA_FINALIZADA:
        raise ValidationError("Session en audit finalisé : elle ne peut plus être rouverte.")
    if session.status == SessionStatus.ABERTA:
        logger.debug("Session %s déjà ouverte, rien à faire", session_id)
        return SessionResponse.model_validate(session)

    _ensure_no_other_open_session(db, session.professor_user_id, exclude_id=session.id)

    session.status = SessionStatus.ABERTA.value
    session.closed_at = None
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise OpenSessionExistsError(
            "Une autre chamada est déjà ouverte pour ce professeur. Clôturez-la avant de rouvrir celle-ci."
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Échec de la réouverture de la session %s : %s", session_id, exc)
        raise TransientIOError("Impossible de rouvrir la session, réessayez.") from exc
    db.refresh(session)

    logger.info("Session %s rouverte par %s", session_id, actor.id)
    return SessionResponse.model_validate(session)


def get_session(db: Session, session_id: uuid.UUID, actor: Actor) -> SessionResponse:
    """Détail d'une session (sans les hashes)."""
    session = load_session(db, session_id)
    ensure_can_manage(session, actor)
    return SessionResponse.model_validate(session)


def render_checkin_qr(db: Session, session_id: uuid.UUID, actor: Actor) -> bytes:
    """
    QR code PNG du lien public de la page élève.
    Le code d'entrée n'y figure pas : l'élève le saisit séparément.
    """
    session = load_session(db, session_id)
    ensure_can_manage(session, actor)
    if session.status != SessionStatus.ABERTA:
        raise ValidationError("Le QR code n'est disponible que pour une session ouverte.")
    return qr_service.generate_qr_image(f"{settings.CHECKIN_BASE_URL}?token={session.public_token}")


def _ensure_no_other_open_session(
    db: Session,
    professor_id: uuid.UUID,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    query = select(AttendanceSession.id).where(
        AttendanceSession.professor_user_id == professor_id,
        AttendanceSession.status == SessionStatus.ABERTA.value,
    )
    if exclude_id is not None:
        query = query.where(AttendanceSession.id != exclude_id)

    existing_id = db.execute(query.limit(1)).scalar()
    if existing_id:
        raise OpenSessionExistsError(
            f"Une chamada est déjà ouverte pour ce professeur (session {existing_id}). "
            "Clôturez-la avant d'en ouvrir une autre."
        )


def _commit_transition(db: Session, session_id: uuid.UUID, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Échec de la %s de la session %s : %s", action, session_id, exc)
        raise TransientIOError(f"Échec de la {action} de la session, réessayez.") from exc
