"""
Tests d'intégration API pour le cycle de vie des sessions.
Testent POST /api/v1/attendance-sessions
      GET  /api/v1/attendance-sessions/{id}
      POST /api/v1/attendance-sessions/{id}/close
      POST /api/v1/attendance-sessions/{id}/reopen
      GET  /api/v1/attendance-sessions/{id}/qrcode
      GET  /api/v1/attendance-sessions/{id}/ata
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import patch

from chamada.exceptions import (
    NotFoundError,
    OpenSessionExistsError,
    PermissionDeniedError,
    TransientIOError,
    ValidationError,
)
from chamada.schemas.session import SessionOpened, SessionResponse

from conftest import PROFESSOR_ID


# --- Helpers ---

def make_session_response(**kwargs) -> SessionResponse:
    return SessionResponse(
        id=kwargs.get("id", uuid.uuid4()),
        class_id=uuid.uuid4(),
        subject_id=uuid.uuid4(),
        professor_user_id=PROFESSOR_ID,
        lesson_entry_id=None,
        opened_at=datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc),
        closed_at=kwargs.get("closed_at", None),
        status=kwargs.get("status", "ABERTA"),
        public_token="tok_public",
        require_geo=False,
        geo_lat=None,
        geo_lng=None,
        geo_radius_m=None,
    )


# ============================================================
# POST /api/v1/attendance-sessions
# ============================================================

def test_ouverture_succes(client):
    """Ouverture valide → 201 avec les codes en clair."""
    base = make_session_response()
    with patch("chamada.routers.sessions.session_service.open_session") as mock:
        mock.return_value = SessionOpened(**base.model_dump(), entry_code="K7M2QZ", close_token="ABCD2345")
        response = client.post("/api/v1/attendance-sessions", json={"class_subject_id": str(uuid.uuid4())})

    assert response.status_code == 201
    data = response.json()
    assert data["entry_code"] == "K7M2QZ"
    assert data["close_token"] == "ABCD2345"
    assert data["status"] == "ABERTA"
    assert "entry_code_hash" not in data


def test_ouverture_avec_geofence_transmise(client):
    with patch("chamada.routers.sessions.session_service.open_session") as mock:
        mock.return_value = SessionOpened(
            **make_session_response().model_dump(), entry_code="K7M2QZ", close_token="ABCD2345",
        )
        client.post(
            "/api/v1/attendance-sessions",
            json={"class_subject_id": str(uuid.uuid4()), "geofence": {"lat": -23.5, "lng": -46.6}},
        )

    data = mock.call_args.args[1]
    assert data.geofence.lat == -23.5


def test_ouverture_session_deja_ouverte_409(client):
    with patch("chamada.routers.sessions.session_service.open_session") as mock:
        mock.side_effect = OpenSessionExistsError("Une chamada est déjà ouverte pour ce professeur.")
        response = client.post("/api/v1/attendance-sessions", json={"class_subject_id": str(uuid.uuid4())})

    assert response.status_code == 409
    assert "déjà ouverte" in response.json()["detail"]


def test_ouverture_contexte_introuvable_400(client):
    with patch("chamada.routers.sessions.session_service.open_session") as mock:
        mock.side_effect = ValidationError("Classe ou discipline introuvable.")
        response = client.post("/api/v1/attendance-sessions", json={"class_subject_id": str(uuid.uuid4())})
    assert response.status_code == 400


def test_ouverture_latitude_invalide_422(client):
    response = client.post(
        "/api/v1/attendance-sessions",
        json={"class_subject_id": str(uuid.uuid4()), "geofence": {"lat": 123, "lng": 0}},
    )
    assert response.status_code == 422


def test_ouverture_base_indisponible_503(client):
    with patch("chamada.routers.sessions.session_service.open_session") as mock:
        mock.side_effect = TransientIOError("Impossible d'enregistrer la session, réessayez.")
        response = client.post("/api/v1/attendance-sessions", json={"class_subject_id": str(uuid.uuid4())})
    assert response.status_code == 503


# ============================================================
# GET / close / reopen
# ============================================================

def test_detail_session(client):
    session_id = uuid.uuid4()
    with patch("chamada.routers.sessions.session_service.get_session") as mock:
        mock.return_value = make_session_response(id=session_id)
        response = client.get(f"/api/v1/attendance-sessions/{session_id}")
    assert response.status_code == 200
    assert response.json()["id"] == str(session_id)


def test_detail_session_introuvable_404(client):
    with patch("chamada.routers.sessions.session_service.get_session") as mock:
        mock.side_effect = NotFoundError("Session introuvable.")
        response = client.get(f"/api/v1/attendance-sessions/{uuid.uuid4()}")
    assert response.status_code == 404


def test_cloture_sans_corps(client):
    with patch("chamada.routers.sessions.session_service.close_session") as mock:
        mock.return_value = make_session_response(status="ENCERRADA", closed_at=datetime.now(timezone.utc))
        response = client.post(f"/api/v1/attendance-sessions/{uuid.uuid4()}/close")

    assert response.status_code == 200
    assert response.json()["status"] == "ENCERRADA"
    assert mock.call_args.args[3] is None


def test_cloture_avec_jeton_normalise(client):
    with patch("chamada.routers.sessions.session_service.close_session") as mock:
        mock.return_value = make_session_response(status="ENCERRADA", closed_at=datetime.now(timezone.utc))
        client.post(f"/api/v1/attendance-sessions/{uuid.uuid4()}/close", json={"close_token": " abcd2345 "})
    assert mock.call_args.args[3] == "ABCD2345"


def test_cloture_jeton_invalide_403(client):
    with patch("chamada.routers.sessions.session_service.close_session") as mock:
        mock.side_effect = PermissionDeniedError("Jeton de clôture invalide.")
        response = client.post(f"/api/v1/attendance-sessions/{uuid.uuid4()}/close", json={"close_token": "XXXXXXXX"})
    assert response.status_code == 403


def test_cloture_jeton_vide_422(client):
    response = client.post(f"/api/v1/attendance-sessions/{uuid.uuid4()}/close", json={"close_token": "  "})
    assert response.status_code == 422


def test_reouverture(client):
    with patch("chamada.routers.sessions.session_service.reopen_session") as mock:
        mock.return_value = make_session_response(status="ABERTA")
        response = client.post(f"/api/v1/attendance-sessions/{uuid.uuid4()}/reopen")
    assert response.status_code == 200
    assert response.json()["closed_at"] is None


def test_reouverture_audit_finalise_400(client):
    with patch("chamada.routers.sessions.session_service.reopen_session") as mock:
        mock.side_effect = ValidationError("Session en audit finalisé.")
        response = client.post(f"/api/v1/attendance-sessions/{uuid.uuid4()}/reopen")
    assert response.status_code == 400


# ============================================================
# QR code / ATA
# ============================================================

def test_qrcode_png(client):
    with patch("chamada.routers.sessions.session_service.render_checkin_qr", return_value=b"\x89PNG"):
        response = client.get(f"/api/v1/attendance-sessions/{uuid.uuid4()}/qrcode")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content == b"\x89PNG"


def test_ata_csv(client):
    session_id = uuid.uuid4()
    with patch("chamada.routers.sessions.report_service.export_ata_csv", return_value="\ufeff#;Aluno\r\n"):
        response = client.get(f"/api/v1/attendance-sessions/{session_id}/ata")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert f"ata_{session_id}.csv" in response.headers["content-disposition"]


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
