"""
Effet de bord « micro de l'élève » piloté par l'état de la session observée.

Détection de fronts (état précédent vs état courant), pas de niveau : un élève déjà
orateur ne redemande pas le micro à chaque tick de polling.
- entrée dans active_speakers         → acquire()
- sortie, fin de session ou close()   → release(capture)

Un refus d'accès au périphérique (DeviceAccessError) n'est jamais fatal :
il est journalisé, remonté via on_error, et la session continue sans micro.
"""

import logging
import threading
import uuid
from typing import Any, Callable, Optional

from app.errors import DeviceAccessError
from app.schemas.live_session import LiveSessionState

logger = logging.getLogger(__name__)


class SpeakerTransitionTracker:

    def __init__(
        self,
        user_id: uuid.UUID,
        acquire: Callable[[], Any],
        release: Callable[[Any], None],
        on_error: Optional[Callable[[DeviceAccessError], None]] = None,
    ):
        self.user_id = user_id
        self._acquire = acquire
        self._release = release
        self._on_error = on_error
        self._lock = threading.Lock()
        self._is_speaker = False
        self._capture = None
        self._closed = False

    @property
    def is_speaker(self) -> bool:
        return self._is_speaker

    @property
    def capturing(self) -> bool:
        return self._capture is not None

    def observe(self, state: Optional[LiveSessionState]) -> None:
        """À brancher directement comme callback d'un abonnement SessionObserver."""
        now_speaker = state is not None and self.user_id in state.active_speakers
        with self._lock:
            if self._closed:
                return
            if now_speaker and not self._is_speaker:
                self._is_speaker = True
                self._start_capture()
            elif not now_speaker and self._is_speaker:
                self._is_speaker = False
                self._stop_capture()

    def close(self) -> None:
        """Démontage du composant : libère le micro, définitivement (les livraisons suivantes sont ignorées)."""
        with self._lock:
            self._closed = True
            self._is_speaker = False
            self._stop_capture()

    def _start_capture(self) -> None:
        try:
            self._capture = self._acquire()
        except DeviceAccessError as exc:
            logger.warning("Micro indisponible pour %s : %s", self.user_id, exc)
            if self._on_error is not None:
                self._on_error(exc)
            return
        logger.info("Capture micro démarrée pour %s", self.user_id)

    def _stop_capture(self) -> None:
        capture, self._capture = self._capture, None
        if capture is None:
            return
        self._release(capture)
        logger.info("Capture micro arrêtée pour %s", self.user_id)
