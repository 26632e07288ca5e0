"""
Composants partagés du processus, construits une seule fois à partir de la configuration :
stockage des sessions live, gestionnaire, observateur (push ou poll),
fournisseur de statistiques et stockage objet.

Chaque fonction est une dépendance FastAPI : les tests les remplacent via
app.dependency_overrides.
"""

from functools import lru_cache

from app.config import settings
from app.database import SessionLocal
from app.scheduler import scheduler
from app.services.analytics_service import ScoreProvider, build_score_provider
from app.services.live_session_service import LiveSessionManager
from app.services.session_observer import PollingSessionObserver, PushSessionObserver, SessionObserver
from app.services.session_store import SessionStore, SqlSessionStore
from app.services.storage_service import StorageService


@lru_cache
def get_session_store() -> SessionStore:
    return SqlSessionStore(SessionLocal)


@lru_cache
def get_live_manager() -> LiveSessionManager:
    return LiveSessionManager(get_session_store(), strict=settings.LIVE_STRICT_MODE)


@lru_cache
def get_session_observer() -> SessionObserver:
    """LIVE_SYNC_MODE=poll → polling APScheduler, sinon notifications push du store."""
    if settings.LIVE_SYNC_MODE == "poll":
        return PollingSessionObserver(get_live_manager(), scheduler, settings.LIVE_POLL_INTERVAL_MS)
    return PushSessionObserver(get_session_store())


@lru_cache
def get_score_provider() -> ScoreProvider:
    return build_score_provider(settings.ANALYTICS_PROVIDER)


@lru_cache
def get_storage() -> StorageService:
    return StorageService(settings.STORAGE_ROOT, settings.STORAGE_BASE_URL, settings.MAX_UPLOAD_BYTES)
