"""
Stockage des sessions live derrière une interface unique.

Deux implémentations :
- InMemorySessionStore : dictionnaire classe → état (tests, démo)
- SqlSessionStore      : tables classes / live_sessions / live_session_members

Règles communes :
- l'ouverture d'une session et le passage is_live=True se font en une seule écriture,
  idem pour la fermeture (suppression complète + is_live=False)
- les read-modify-write d'une même classe sont sérialisés (un seul écrivain par classe)
- chaque écriture effective est notifiée aux observateurs (mode push) une fois le
  verrou de la classe relâché ; un numéro de séquence pris sous le verrou garantit
  qu'un observateur ne reçoit jamais un état plus ancien que le dernier livré
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Set

from sqlalchemy import delete, select, update
from sqlalchemy.orm import sessionmaker

from app.errors import NotFoundError
from app.models.live_session import MEMBER_HAND, MEMBER_SPEAKER, LiveSession, LiveSessionMember
from app.models.school_class import SchoolClass
from app.schemas.live_session import LiveSessionState, StreamMode

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[LiveSessionState]], None]
ErrorListener = Callable[[Exception], None]
SessionMutator = Callable[[LiveSessionState], None]


class _Watch:
    """Écouteur enregistré ; livre les états dans l'ordre de séquence, un à la fois."""

    def __init__(self, on_change: SessionListener, on_error: Optional[ErrorListener]):
        self.on_change = on_change
        self.on_error = on_error
        self._lock = threading.Lock()
        self._last_seq = 0

    def deliver(self, seq: int, state: Optional[LiveSessionState]) -> bool:
        """Retourne False (sans appel) si un état plus récent a déjà été livré."""
        with self._lock:
            if seq <= self._last_seq:
                return False
            self._last_seq = seq
            self.on_change(state)
            return True


class _ClassLock:
    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class SessionStore(ABC):
    """Interface de stockage clé → état de session, avec notification des écritures."""

    def __init__(self):
        self._locks: Dict[uuid.UUID, _ClassLock] = {}
        self._locks_guard = threading.Lock()
        self._watches: Dict[uuid.UUID, List[_Watch]] = {}
        self._watches_guard = threading.Lock()
        self._seq = 0
        self._seq_guard = threading.Lock()

    @abstractmethod
    def class_exists(self, class_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    def is_class_live(self, class_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    def open_session(self, state: LiveSessionState) -> None:
        """Écrit un nouvel enregistrement (remplace l'existant) et passe la classe en live."""

    @abstractmethod
    def close_session(self, class_id: uuid.UUID) -> bool:
        """Supprime l'enregistrement et repasse la classe hors ligne. False si rien à supprimer."""

    @abstractmethod
    def get_session(self, class_id: uuid.UUID) -> Optional[LiveSessionState]:
        ...

    @abstractmethod
    def update_session(self, class_id: uuid.UUID, mutator: SessionMutator) -> Optional[LiveSessionState]:
        """
        Applique mutator sur une copie de l'état courant et l'enregistre.
        Retourne None si aucune session n'existe (rien n'est écrit).
        """

    @contextmanager
    def class_lock(self, class_id: uuid.UUID) -> Iterator[None]:
        """
        Verrou d'écriture de la classe (réentrant).
        Le verrou est retiré du registre dès que plus personne ne l'attend ni ne le tient.
        """
        with self._locks_guard:
            entry = self._locks.get(class_id)
            if entry is None:
                entry = self._locks[class_id] = _ClassLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    self._locks.pop(class_id, None)

    def watch(
        self,
        class_id: uuid.UUID,
        on_change: SessionListener,
        on_error: Optional[ErrorListener] = None,
        replay: bool = False,
    ) -> Callable[[], None]:
        """
        Enregistre un écouteur appelé après chaque écriture effective sur la session
        (état complet, ou None à la fermeture). Retourne la fonction de désabonnement.

        replay=True livre aussitôt l'état courant, ordonné avec les notifications :
        une écriture concurrente n'est jamais écrasée par une relecture plus ancienne.
        Une erreur pendant cette première livraison est seulement journalisée.
        """
        entry = _Watch(on_change, on_error)
        with self._watches_guard:
            self._watches.setdefault(class_id, []).append(entry)

        def unwatch() -> None:
            with self._watches_guard:
                entries = self._watches.get(class_id, [])
                if entry in entries:
                    entries.remove(entry)
                if not entries:
                    self._watches.pop(class_id, None)

        if replay:
            try:
                with self.class_lock(class_id):
                    state = self.get_session(class_id)
                    seq = self._next_seq()
                entry.deliver(seq, state)
            except Exception as exc:
                logger.error("Lecture initiale de la session %s impossible : %s", class_id, exc)

        return unwatch

    def has_watchers(self, class_id: uuid.UUID) -> bool:
        with self._watches_guard:
            return bool(self._watches.get(class_id))

    def _next_seq(self) -> int:
        """À appeler sous le verrou de la classe, juste après l'écriture."""
        with self._seq_guard:
            self._seq += 1
            return self._seq

    def _notify(self, class_id: uuid.UUID, seq: int, state: Optional[LiveSessionState]) -> None:
        """Appelé hors du verrou de la classe : un abonné lent ne bloque pas les écrivains."""
        with self._watches_guard:
            entries = list(self._watches.get(class_id, []))
        for entry in entries:
            snapshot = state.model_copy(deep=True) if state is not None else None
            try:
                entry.deliver(seq, snapshot)
            except Exception as exc:
                logger.error("Notification de la session %s échouée : %s", class_id, exc)
                if entry.on_error is not None:
                    try:
                        entry.on_error(exc)
                    except Exception as err:
                        logger.error("Gestionnaire d'erreur de la session %s en échec : %s", class_id, err)


class InMemorySessionStore(SessionStore):
    """Stockage en mémoire : les classes connues doivent être enregistrées via register_class()."""

    def __init__(self, class_ids=()):
        super().__init__()
        self._classes: Dict[uuid.UUID, bool] = {cid: False for cid in class_ids}
        self._sessions: Dict[uuid.UUID, LiveSessionState] = {}

    def register_class(self, class_id: uuid.UUID) -> None:
        self._classes.setdefault(class_id, False)

    def class_exists(self, class_id: uuid.UUID) -> bool:
        return class_id in self._classes

    def is_class_live(self, class_id: uuid.UUID) -> bool:
        return self._classes.get(class_id, False)

    def open_session(self, state: LiveSessionState) -> None:
        class_id = state.class_id
        with self.class_lock(class_id):
            if class_id not in self._classes:
                raise NotFoundError(f"Classe {class_id} introuvable.")
            self._sessions[class_id] = state.model_copy(deep=True)
            self._classes[class_id] = True
            seq = self._next_seq()
        self._notify(class_id, seq, state)

    def close_session(self, class_id: uuid.UUID) -> bool:
        with self.class_lock(class_id):
            existed = self._sessions.pop(class_id, None) is not None
            if class_id in self._classes:
                self._classes[class_id] = False
            seq = self._next_seq()
        if existed:
            self._notify(class_id, seq, None)
        return existed

    def get_session(self, class_id: uuid.UUID) -> Optional[LiveSessionState]:
        state = self._sessions.get(class_id)
        return state.model_copy(deep=True) if state is not None else None

    def update_session(self, class_id: uuid.UUID, mutator: SessionMutator) -> Optional[LiveSessionState]:
        with self.class_lock(class_id):
            current = self._sessions.get(class_id)
            if current is None:
                return None
            updated = current.model_copy(deep=True)
            mutator(updated)
            if updated == current:
                return updated
            self._sessions[class_id] = updated.model_copy(deep=True)
            seq = self._next_seq()
        self._notify(class_id, seq, updated)
        return updated


class SqlSessionStore(SessionStore):
    """
    Stockage PostgreSQL.

    Chaque opération tourne dans sa propre transaction. update_session verrouille
    la ligne live_sessions (SELECT ... FOR UPDATE) : deux écrivains concurrents,
    même sur des instances différentes de l'API, ne peuvent pas perdre de mise à jour.
    L'admission d'un orateur (retrait de la main + ajout orateur) est un seul commit.

    Les notifications push ne couvrent que les écritures faites par ce processus.
    """

    def __init__(self, session_factory: sessionmaker):
        super().__init__()
        self._session_factory = session_factory

    def class_exists(self, class_id: uuid.UUID) -> bool:
        with self._session_factory() as db:
            return db.get(SchoolClass, class_id) is not None

    def is_class_live(self, class_id: uuid.UUID) -> bool:
        with self._session_factory() as db:
            school_class = db.get(SchoolClass, class_id)
            return bool(school_class is not None and school_class.is_live)

    def open_session(self, state: LiveSessionState) -> None:
        class_id = state.class_id
        with self.class_lock(class_id):
            with self._session_factory() as db:
                school_class = db.get(SchoolClass, class_id, with_for_update=True)
                if school_class is None:
                    raise NotFoundError(f"Classe {class_id} introuvable.")

                # Une session précédente ne doit laisser aucun membre résiduel
                db.execute(delete(LiveSessionMember).where(LiveSessionMember.class_id == class_id))
                record = db.get(LiveSession, class_id)
                if record is None:
                    record = LiveSession(class_id=class_id)
                    db.add(record)
                record.mode = state.mode.value
                record.started_at = state.started_at
                db.flush()
                self._insert_members(db, class_id, MEMBER_HAND, state.raised_hands)
                self._insert_members(db, class_id, MEMBER_SPEAKER, state.active_speakers)

                school_class.is_live = True
                db.commit()
            seq = self._next_seq()
        self._notify(class_id, seq, state)

    def close_session(self, class_id: uuid.UUID) -> bool:
        with self.class_lock(class_id):
            with self._session_factory() as db:
                school_class = db.get(SchoolClass, class_id, with_for_update=True)
                deleted = self._delete_rows(db, class_id, school_class)
                db.commit()
            seq = self._next_seq()
        if deleted:
            self._notify(class_id, seq, None)
        return deleted

    def get_session(self, class_id: uuid.UUID) -> Optional[LiveSessionState]:
        with self._session_factory() as db:
            return self._load(db, class_id)

    def update_session(self, class_id: uuid.UUID, mutator: SessionMutator) -> Optional[LiveSessionState]:
        with self.class_lock(class_id):
            with self._session_factory() as db:
                current = self._load(db, class_id, for_update=True)
                if current is None:
                    return None
                updated = current.model_copy(deep=True)
                mutator(updated)
                if updated == current:
                    return updated

                if updated.mode != current.mode:
                    db.execute(
                        update(LiveSession)
                        .where(LiveSession.class_id == class_id)
                        .values(mode=updated.mode.value)
                    )
                self._apply_diff(db, class_id, MEMBER_HAND, current.raised_hands, updated.raised_hands)
                self._apply_diff(db, class_id, MEMBER_SPEAKER, current.active_speakers, updated.active_speakers)
                db.commit()
            seq = self._next_seq()
        self._notify(class_id, seq, updated)
        return updated

    def reconcile(self) -> int:
        """
        Répare les incohérences is_live ↔ live_sessions (écritures manuelles, crash en cours
        de migration). Retourne le nombre de classes corrigées.

        Le premier passage ne fait que repérer les classes suspectes ; chacune est
        ensuite relue et réparée sous son verrou, lignes verrouillées. Une session
        démarrée ou terminée entre-temps n'est donc jamais touchée.
        """
        with self._session_factory() as db:
            session_ids = set(db.execute(select(LiveSession.class_id)).scalars().all())
            live_ids = set(db.execute(
                select(SchoolClass.id).where(SchoolClass.is_live.is_(True))
            ).scalars().all())

        fixed = 0
        for class_id in session_ids ^ live_ids:
            if self._repair(class_id):
                fixed += 1
        return fixed

    def _repair(self, class_id: uuid.UUID) -> bool:
        """Relit la classe sous verrou ; ne corrige que si l'incohérence est toujours là."""
        with self.class_lock(class_id):
            with self._session_factory() as db:
                school_class = db.get(SchoolClass, class_id, with_for_update=True)
                record = db.get(LiveSession, class_id, with_for_update=True)
                is_live = bool(school_class is not None and school_class.is_live)
                if is_live == (record is not None):
                    return False

                if record is None:
                    school_class.is_live = False
                    logger.warning("Classe %s live sans session : repassée hors ligne", class_id)
                else:
                    self._delete_rows(db, class_id, school_class)
                    logger.warning("Session orpheline de la classe %s supprimée", class_id)
                db.commit()
            seq = self._next_seq()
        if record is not None:
            self._notify(class_id, seq, None)
        return True

    @staticmethod
    def _delete_rows(db, class_id: uuid.UUID, school_class: Optional[SchoolClass]) -> bool:
        """Supprime l'enregistrement et ses membres, repasse la classe hors ligne (sans commit)."""
        db.execute(delete(LiveSessionMember).where(LiveSessionMember.class_id == class_id))
        deleted = db.execute(
            delete(LiveSession).where(LiveSession.class_id == class_id)
        ).rowcount
        if school_class is not None:
            school_class.is_live = False
        return bool(deleted)

    def _load(self, db, class_id: uuid.UUID, for_update: bool = False) -> Optional[LiveSessionState]:
        record = db.get(LiveSession, class_id, with_for_update=for_update or None)
        if record is None:
            return None
        rows = db.execute(
            select(LiveSessionMember.user_id, LiveSessionMember.kind)
            .where(LiveSessionMember.class_id == class_id)
        ).all()
        return LiveSessionState(
            class_id=class_id,
            mode=StreamMode(record.mode),
            raised_hands={user_id for user_id, kind in rows if kind == MEMBER_HAND},
            active_speakers={user_id for user_id, kind in rows if kind == MEMBER_SPEAKER},
            started_at=record.started_at,
        )

    @staticmethod
    def _insert_members(db, class_id: uuid.UUID, kind: str, user_ids: Set[uuid.UUID]) -> None:
        for user_id in user_ids:
            db.add(LiveSessionMember(class_id=class_id, user_id=user_id, kind=kind))

    @staticmethod
    def _apply_diff(db, class_id: uuid.UUID, kind: str, before: Set[uuid.UUID], after: Set[uuid.UUID]) -> None:
        removed = before - after
        if removed:
            db.execute(
                delete(LiveSessionMember).where(
                    LiveSessionMember.class_id == class_id,
                    LiveSessionMember.kind == kind,
                    LiveSessionMember.user_id.in_(list(removed)),
                )
            )
        for user_id in after - before:
            db.add(LiveSessionMember(class_id=class_id, user_id=user_id, kind=kind))
