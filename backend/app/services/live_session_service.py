"""
Gestionnaire des sessions live : démarrage / arrêt, mode de diffusion,
mains levées et droits de parole.

Machine à états par classe : OFFLINE → LIVE (start_session) → OFFLINE (end_session).
Pendant LIVE, le mode passe librement de camera à screen à whiteboard.

Toutes les mutations passent par ce gestionnaire ; le stockage (mémoire ou SQL)
est interchangeable derrière SessionStore.

Sans session en cours, les commandes sont des no-op (ex. un élève qui baisse la main
juste après la fin du cours). En mode strict, elles lèvent SessionNotLiveError.
Le contrôle d'accès (propriétaire de la classe) est fait en amont par app.services.policy.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from app.errors import NotFoundError, SessionNotLiveError
from app.schemas.live_session import LiveSessionState, StreamMode
from app.services.session_store import SessionMutator, SessionStore

logger = logging.getLogger(__name__)


class LiveSessionManager:

    def __init__(self, store: SessionStore, strict: bool = False):
        self._store = store
        self._strict = strict

    @property
    def store(self) -> SessionStore:
        return self._store

    def start_session(self, class_id: uuid.UUID) -> LiveSessionState:
        """
        Ouvre une session : mode CAMERA, aucune main levée, aucun orateur.
        Relancer une classe déjà live repart d'un état vierge.
        Lève NotFoundError si la classe n'existe pas.
        """
        if not self._store.class_exists(class_id):
            raise NotFoundError(f"Classe {class_id} introuvable.")

        state = LiveSessionState(
            class_id=class_id,
            mode=StreamMode.CAMERA,
            started_at=datetime.now(timezone.utc),
        )
        self._store.open_session(state)
        logger.info("Session live démarrée : classe %s", class_id)
        return state

    def end_session(self, class_id: uuid.UUID) -> None:
        """Supprime la session et repasse la classe hors ligne. Idempotent."""
        if self._store.close_session(class_id):
            logger.info("Session live terminée : classe %s", class_id)
        else:
            logger.debug("end_session ignoré : aucune session pour la classe %s", class_id)

    def get_session_state(self, class_id: uuid.UUID) -> Optional[LiveSessionState]:
        return self._store.get_session(class_id)

    def is_live(self, class_id: uuid.UUID) -> bool:
        return self._store.is_class_live(class_id)

    def set_mode(self, class_id: uuid.UUID, mode: StreamMode) -> Optional[LiveSessionState]:
        mode = StreamMode(mode)

        def _set_mode(state: LiveSessionState) -> None:
            state.mode = mode

        return self._mutate(class_id, _set_mode, "set_mode")

    def raise_hand(self, class_id: uuid.UUID, user_id: uuid.UUID) -> Optional[LiveSessionState]:
        return self._mutate(class_id, lambda state: state.raised_hands.add(user_id), "raise_hand")

    def lower_hand(self, class_id: uuid.UUID, user_id: uuid.UUID) -> Optional[LiveSessionState]:
        return self._mutate(class_id, lambda state: state.raised_hands.discard(user_id), "lower_hand")

    def admit_speaker(self, class_id: uuid.UUID, user_id: uuid.UUID) -> Optional[LiveSessionState]:
        """Donne la parole : ajout aux orateurs et retrait des mains levées, en une seule écriture."""

        def _admit(state: LiveSessionState) -> None:
            state.active_speakers.add(user_id)
            state.raised_hands.discard(user_id)

        return self._mutate(class_id, _admit, "admit_speaker")

    def mute_speaker(self, class_id: uuid.UUID, user_id: uuid.UUID) -> Optional[LiveSessionState]:
        """Retire la parole. Les mains levées ne sont pas modifiées."""
        return self._mutate(class_id, lambda state: state.active_speakers.discard(user_id), "mute_speaker")

    def _mutate(self, class_id: uuid.UUID, mutator: SessionMutator, operation: str) -> Optional[LiveSessionState]:
        updated = self._store.update_session(class_id, mutator)
        if updated is None:
            if self._strict:
                raise SessionNotLiveError(f"Aucune session live en cours pour la classe {class_id}.")
            logger.debug("%s ignoré : aucune session live pour la classe %s", operation, class_id)
        return updated
