"""
Configuration partagée pour tous les tests.
Override la dépendance get_db pour éviter toute connexion réelle à PostgreSQL,
l'utilisateur courant (pas de fournisseur d'identité en test) et le gestionnaire
de sessions live (stockage en mémoire).
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock, patch

from app.auth import get_current_user
from app.database import get_db
from app.dependencies import get_live_manager, get_session_observer, get_storage
from app.main import app
from app.models.user import User
from app.services.live_session_service import LiveSessionManager
from app.services.session_observer import PushSessionObserver
from app.services.session_store import InMemorySessionStore
from app.services.storage_service import StorageService


def make_user(role="teacher", name=None, user_id=None) -> User:
    return User(
        id=user_id or uuid.uuid4(),
        role=role,
        name=name or ("M. Anderson" if role == "teacher" else "Alice"),
    )


@pytest.fixture
def teacher():
    return make_user("teacher")


@pytest.fixture
def student():
    return make_user("student", name="Alice")


@pytest.fixture
def class_id():
    return uuid.uuid4()


@pytest.fixture
def live_store(class_id):
    """Stockage en mémoire où class_id est une classe connue (hors ligne)."""
    return InMemorySessionStore(class_ids=[class_id])


@pytest.fixture
def manager(live_store):
    return LiveSessionManager(live_store)


@pytest.fixture
def mock_db():
    db = MagicMock()
    db.get.return_value = None
    return db


@pytest.fixture
def client(mock_db, teacher, live_store, manager, tmp_path):
    """Client HTTP de test : BDD mockée, enseignant connecté, sessions live en mémoire."""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: teacher
    app.dependency_overrides[get_live_manager] = lambda: manager
    app.dependency_overrides[get_session_observer] = lambda: PushSessionObserver(live_store)
    app.dependency_overrides[get_storage] = lambda: StorageService(
        str(tmp_path), "http://test/files", 10 * 1024 * 1024
    )
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_as():
    """Change l'utilisateur connecté pour la suite du test."""
    def _auth_as(user: User) -> None:
        app.dependency_overrides[get_current_user] = lambda: user
    return _auth_as


@pytest.fixture
def allow_all():
    """Désactive les contrôles d'accès (testés séparément dans test_policy.py)."""
    with patch("app.services.policy.ensure_class_owner") as owner, \
            patch("app.services.policy.ensure_class_member") as member, \
            patch("app.services.policy.ensure_self_or_owner") as self_or_owner:
        yield {"owner": owner, "member": member, "self_or_owner": self_or_owner}
