"""
Observation des sessions live : livre l'état courant (ou son absence) à chaque
client intéressé.

Deux stratégies interchangeables derrière SessionObserver :
- push : écoute des écritures du SessionStore, livraison immédiate de l'état complet
- poll : job APScheduler à intervalle fixe (2000 ms par défaut), livraison sur changement

Garanties communes :
- annuler un abonnement coupe la livraison immédiatement, y compris pour une réponse
  arrivée en retard
- une erreur de livraison ou de lecture ne casse jamais la boucle d'observation
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, List, Optional

from apscheduler.jobstores.base import JobLookupError

from app.schemas.live_session import LiveSessionState
from app.services.live_session_service import LiveSessionManager
from app.services.session_store import SessionListener, SessionStore

logger = logging.getLogger(__name__)


class Subscription:
    """Poignée d'annulation retournée par SessionObserver.subscribe()."""

    def __init__(self, class_id: uuid.UUID, on_change: SessionListener):
        self.class_id = class_id
        self._on_change = on_change
        self._lock = threading.RLock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, state: Optional[LiveSessionState]) -> bool:
        """Transmet l'état à l'abonné. Retourne False si l'abonnement est annulé."""
        with self._lock:
            if not self._active:
                return False
            self._on_change(state)
            return True

    def cancel(self) -> None:
        """Idempotent. Attend la fin d'une livraison en cours, puis plus aucun appel."""
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._release()

    def _release(self) -> None:
        pass


class SessionObserver(ABC):

    @abstractmethod
    def subscribe(self, class_id: uuid.UUID, on_change: SessionListener) -> Subscription:
        """Abonne on_change aux changements de la session de class_id."""


# --- Mode push ---

class _PushSubscription(Subscription):

    def __init__(self, store: SessionStore, class_id: uuid.UUID, on_change: SessionListener):
        super().__init__(class_id, on_change)
        self._store = store
        # Livre aussitôt l'état courant, ordonné avec les notifications d'écriture
        self._unwatch = store.watch(class_id, self.deliver, self._on_watch_error, replay=True)

    def _on_watch_error(self, exc: Exception) -> None:
        self._unwatch()
        if not self.active:
            return
        logger.warning("Livraison push échouée pour la classe %s, réabonnement", self.class_id)
        self._unwatch = self._store.watch(self.class_id, self.deliver, self._on_watch_error, replay=True)

    def _release(self) -> None:
        self._unwatch()


class PushSessionObserver(SessionObserver):
    """Livre l'état initial à l'abonnement, puis chaque écriture effective."""

    def __init__(self, store: SessionStore):
        self._store = store

    def subscribe(self, class_id: uuid.UUID, on_change: SessionListener) -> Subscription:
        return _PushSubscription(self._store, class_id, on_change)


# --- Mode poll ---

class _PollingSubscription(Subscription):

    def __init__(self, manager: LiveSessionManager, scheduler, class_id: uuid.UUID, on_change: SessionListener):
        super().__init__(class_id, on_change)
        self._manager = manager
        self._scheduler = scheduler
        self.job_id = f"live-poll-{class_id}-{uuid.uuid4().hex[:8]}"
        self._was_live: Optional[bool] = None
        self._last: Optional[LiveSessionState] = None
        self._delivered = False

    def poll(self) -> None:
        """
        Un tick de polling : lit is_live et la session séparément, détecte les fronts
        idle → live / live → idle et ne livre que si l'état a changé.
        Une classe non live est toujours livrée comme None, même si un enregistrement traîne.
        """
        if not self.active:
            return
        try:
            is_live = self._manager.is_live(self.class_id)
            state = self._manager.get_session_state(self.class_id) if is_live else None
        except Exception as exc:
            logger.error(
                "Polling de la session %s échoué, nouvel essai au prochain intervalle : %s",
                self.class_id, exc,
            )
            return

        if self._was_live is not None and is_live != self._was_live:
            logger.info("Classe %s : %s", self.class_id, "idle → live" if is_live else "live → idle")
        self._was_live = is_live

        if self._delivered and state == self._last:
            return
        self._last = state
        self._delivered = True
        try:
            self.deliver(state)
        except Exception as exc:
            logger.error("Abonné de la session %s en erreur : %s", self.class_id, exc)

    def _release(self) -> None:
        try:
            self._scheduler.remove_job(self.job_id)
        except JobLookupError:
            pass


class PollingSessionObserver(SessionObserver):
    """Un job d'intervalle par abonnement ; le premier tick est immédiat."""

    def __init__(self, manager: LiveSessionManager, scheduler, interval_ms: int = 2000):
        self._manager = manager
        self._scheduler = scheduler
        self._interval_ms = interval_ms

    def subscribe(self, class_id: uuid.UUID, on_change: SessionListener) -> Subscription:
        subscription = _PollingSubscription(self._manager, self._scheduler, class_id, on_change)
        self._scheduler.add_job(
            subscription.poll,
            trigger="interval",
            seconds=self._interval_ms / 1000,
            id=subscription.job_id,
            next_run_time=datetime.now(),
            replace_existing=True,
        )
        return subscription


def resolve_raised_hands(
    state: Optional[LiveSessionState],
    resolve_user: Callable[[uuid.UUID], Any],
) -> List[Any]:
    """
    Résout les ids des mains levées en profils pour l'affichage.
    Best-effort : un profil introuvable ou en erreur est simplement omis.
    """
    if state is None:
        return []
    profiles = []
    for user_id in sorted(state.raised_hands, key=str):
        try:
            profile = resolve_user(user_id)
        except Exception as exc:
            logger.debug("Profil %s non résolu : %s", user_id, exc)
            continue
        if profile is not None:
            profiles.append(profile)
    return profiles
