"""
Tests du stockage SQL des sessions live, sur une base SQLite en mémoire.
Vérifient la cohérence is_live ↔ live_sessions, l'absence de membres résiduels,
les notifications et la réconciliation.
"""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base
from app.errors import NotFoundError
from app.models.live_session import LiveSession, LiveSessionMember
from app.models.school_class import SchoolClass
from app.models.user import User
from app.schemas.live_session import LiveSessionState, StreamMode
from app.services.live_session_service import LiveSessionManager
from app.services.session_store import SqlSessionStore


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def sql_class_id(session_factory):
    teacher_id = uuid.uuid4()
    class_id = uuid.uuid4()
    with session_factory() as db:
        db.add(User(id=teacher_id, role="teacher", name="M. Anderson"))
        db.flush()
        db.add(SchoolClass(id=class_id, owner_id=teacher_id, title="Mathématiques", is_live=False))
        db.commit()
    return class_id


@pytest.fixture
def store(session_factory):
    return SqlSessionStore(session_factory)


def _class_is_live(session_factory, class_id) -> bool:
    with session_factory() as db:
        return db.get(SchoolClass, class_id).is_live


def _member_count(session_factory, class_id) -> int:
    with session_factory() as db:
        return db.execute(
            select(func.count()).select_from(LiveSessionMember).where(LiveSessionMember.class_id == class_id)
        ).scalar()


def test_start_session_passe_la_classe_en_live(store, session_factory, sql_class_id):
    manager = LiveSessionManager(store)
    manager.start_session(sql_class_id)

    state = store.get_session(sql_class_id)
    assert state.mode == StreamMode.CAMERA
    assert state.raised_hands == set()
    assert state.active_speakers == set()
    assert _class_is_live(session_factory, sql_class_id) is True


def test_start_session_classe_inexistante(store):
    manager = LiveSessionManager(store)
    with pytest.raises(NotFoundError):
        manager.start_session(uuid.uuid4())


def test_admit_speaker_une_seule_ecriture(store, sql_class_id):
    manager = LiveSessionManager(store)
    a, b = uuid.uuid4(), uuid.uuid4()
    manager.start_session(sql_class_id)
    manager.raise_hand(sql_class_id, a)
    manager.raise_hand(sql_class_id, b)
    manager.raise_hand(sql_class_id, a)

    manager.admit_speaker(sql_class_id, a)
    manager.lower_hand(sql_class_id, b)

    state = store.get_session(sql_class_id)
    assert state.raised_hands == set()
    assert state.active_speakers == {a}


def test_set_mode_persiste(store, sql_class_id):
    manager = LiveSessionManager(store)
    manager.start_session(sql_class_id)
    manager.set_mode(sql_class_id, StreamMode.WHITEBOARD)
    assert store.get_session(sql_class_id).mode == StreamMode.WHITEBOARD


def test_end_session_ne_laisse_aucun_residu(store, session_factory, sql_class_id):
    manager = LiveSessionManager(store)
    manager.start_session(sql_class_id)
    manager.raise_hand(sql_class_id, uuid.uuid4())
    manager.admit_speaker(sql_class_id, uuid.uuid4())

    manager.end_session(sql_class_id)
    manager.end_session(sql_class_id)

    assert store.get_session(sql_class_id) is None
    assert _class_is_live(session_factory, sql_class_id) is False
    assert _member_count(session_factory, sql_class_id) == 0


def test_open_session_remplace_les_membres(store, session_factory, sql_class_id):
    """Réouvrir une session supprime les membres de la précédente."""
    manager = LiveSessionManager(store)
    manager.start_session(sql_class_id)
    manager.raise_hand(sql_class_id, uuid.uuid4())
    manager.start_session(sql_class_id)

    assert store.get_session(sql_class_id).raised_hands == set()
    assert _member_count(session_factory, sql_class_id) == 0


def test_watch_notifie_les_ecritures(store, sql_class_id):
    received = []
    unwatch = store.watch(sql_class_id, received.append)
    manager = LiveSessionManager(store)
    user = uuid.uuid4()

    manager.start_session(sql_class_id)
    manager.raise_hand(sql_class_id, user)
    manager.raise_hand(sql_class_id, user)  # aucun changement → aucune notification
    manager.end_session(sql_class_id)
    unwatch()
    manager.start_session(sql_class_id)

    assert len(received) == 3
    assert received[1].raised_hands == {user}
    assert received[2] is None


def test_reconcile_repare_les_incoherences(store, session_factory, sql_class_id):
    """Classe live sans session → hors ligne ; session orpheline → supprimée."""
    orphan_id = uuid.uuid4()
    with session_factory() as db:
        db.get(SchoolClass, sql_class_id).is_live = True
        owner_id = db.get(SchoolClass, sql_class_id).owner_id
        db.add(SchoolClass(id=orphan_id, owner_id=owner_id, title="Physique", is_live=False))
        db.flush()
        db.add(LiveSession(class_id=orphan_id, mode="camera", started_at=datetime.now(timezone.utc)))
        db.commit()

    assert store.reconcile() == 2
    assert _class_is_live(session_factory, sql_class_id) is False
    assert store.get_session(orphan_id) is None
    assert store.reconcile() == 0


def test_update_session_sans_session(store, sql_class_id):
    assert store.update_session(sql_class_id, lambda s: s.raised_hands.add(uuid.uuid4())) is None


def test_open_session_avec_membres(store, sql_class_id):
    """open_session écrit aussi les ensembles fournis."""
    hand, speaker = uuid.uuid4(), uuid.uuid4()
    store.open_session(LiveSessionState(
        class_id=sql_class_id,
        mode=StreamMode.SCREEN,
        raised_hands={hand},
        active_speakers={speaker},
        started_at=datetime.now(timezone.utc),
    ))
    state = store.get_session(sql_class_id)
    assert state.mode == StreamMode.SCREEN
    assert state.raised_hands == {hand}
    assert state.active_speakers == {speaker}


def test_reconcile_pendant_un_demarrage_laisse_la_session_live(session_factory, sql_class_id):
    """start_session validé entre les deux lectures de reconcile : rien n'est réparé à tort."""
    pending = {"start": None}

    class StartAfterFirstRead(Session):
        def execute(self, *args, **kwargs):
            result = super().execute(*args, **kwargs)
            start, pending["start"] = pending["start"], None
            if start is not None:
                start()
            return result

    store = SqlSessionStore(sessionmaker(class_=StartAfterFirstRead, **session_factory.kw))
    manager = LiveSessionManager(store)
    received = []
    store.watch(sql_class_id, received.append)

    pending["start"] = lambda: manager.start_session(sql_class_id)
    assert store.reconcile() == 0
    assert store.reconcile() == 0

    assert _class_is_live(session_factory, sql_class_id) is True
    assert store.get_session(sql_class_id) is not None
    assert received[-1] is not None


def test_reconcile_notifie_la_suppression_d_une_session_orpheline(store, session_factory, sql_class_id):
    with session_factory() as db:
        db.add(LiveSession(class_id=sql_class_id, mode="camera", started_at=datetime.now(timezone.utc)))
        db.commit()
    received = []
    store.watch(sql_class_id, received.append)

    assert store.reconcile() == 1

    assert received == [None]
    assert store.get_session(sql_class_id) is None
    assert _class_is_live(session_factory, sql_class_id) is False
