"""
Configuration partagée pour tous les tests.
Override les dépendances get_db et get_current_actor pour éviter toute
connexion réelle à PostgreSQL et tout jeton JWT.
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from chamada.database import get_db
from chamada.main import app
from chamada.models.enums import ActorRole
from chamada.security import Actor, get_current_actor

PROFESSOR_ID = uuid.UUID("11111111-1111-4111-8111-111111111111")
COORDINATOR_ID = uuid.UUID("22222222-2222-4222-8222-222222222222")


@pytest.fixture
def professor():
    return Actor(id=PROFESSOR_ID, role=ActorRole.PROFESSOR)


@pytest.fixture
def coordinator():
    return Actor(id=COORDINATOR_ID, role=ActorRole.COORDENADOR)


@pytest.fixture
def client(professor):
    """Client HTTP de test avec la BDD mockée, authentifié comme professeur."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_actor] = lambda: professor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
