"""
Configuration partagée pour tous les tests.
Override la dépendance get_db pour éviter toute connexion réelle à PostgreSQL.
"""

import os

# Avant tout import de studyhall : pas de scheduler en arrière-plan, secret cron connu
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FACILITY_TIMEZONE", "Asia/Seoul")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

from studyhall.database import get_db  # noqa: E402
from studyhall.main import app  # noqa: E402


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD mockée."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def cron_headers():
    return {"Authorization": "Bearer test-cron-secret"}
