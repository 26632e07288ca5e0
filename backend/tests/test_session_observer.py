"""
Tests unitaires de l'observation des sessions live (push et polling).
Couverture : livraison initiale, livraison sur changement, annulation,
réabonnement après erreur, ticks de polling en échec, résolution des mains levées.
"""

import threading
import time
import uuid
from unittest.mock import MagicMock

from app.schemas.live_session import StreamMode
from app.services.session_observer import (
    PollingSessionObserver,
    PushSessionObserver,
    resolve_raised_hands,
)


# ============================================================
# Mode push
# ============================================================

def test_push_abonne_avant_start_recoit_la_session(live_store, manager, class_id):
    """Abonné avant le démarrage : None à l'abonnement, puis la nouvelle session."""
    received = []
    PushSessionObserver(live_store).subscribe(class_id, received.append)

    manager.start_session(class_id)

    assert received[0] is None
    assert received[-1] is not None
    assert received[-1].mode == StreamMode.CAMERA


def test_push_livre_chaque_changement(live_store, manager, class_id):
    user = uuid.uuid4()
    manager.start_session(class_id)
    received = []
    PushSessionObserver(live_store).subscribe(class_id, received.append)

    manager.raise_hand(class_id, user)
    manager.admit_speaker(class_id, user)
    manager.end_session(class_id)

    assert len(received) == 4  # état initial + 3 écritures
    assert received[1].raised_hands == {user}
    assert received[2].active_speakers == {user}
    assert received[2].raised_hands == set()
    assert received[3] is None


def test_push_annulation_coupe_la_livraison(live_store, manager, class_id):
    """Abonnement annulé avant end_session → plus aucun appel."""
    received = []
    subscription = PushSessionObserver(live_store).subscribe(class_id, received.append)
    manager.start_session(class_id)
    count = len(received)

    subscription.cancel()
    subscription.cancel()  # idempotent
    manager.end_session(class_id)

    assert len(received) == count
    assert subscription.active is False


def test_push_erreur_de_livraison_reabonne(live_store, manager, class_id):
    """Un abonné qui échoue est réabonné et reçoit l'état courant."""
    received = []
    calls = {"n": 0}

    def flaky(state):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("connexion perdue")
        received.append(state)

    PushSessionObserver(live_store).subscribe(class_id, flaky)
    manager.start_session(class_id)  # 2e appel → erreur → réabonnement + relecture
    manager.raise_hand(class_id, uuid.uuid4())

    assert received[0] is None
    assert received[1] is not None  # relecture après réabonnement
    assert len(received[2].raised_hands) == 1


def test_push_plusieurs_abonnes(live_store, manager, class_id):
    first, second = [], []
    observer = PushSessionObserver(live_store)
    observer.subscribe(class_id, first.append)
    observer.subscribe(class_id, second.append)

    manager.start_session(class_id)

    assert first[-1] == second[-1]


def test_push_abonne_lent_ne_bloque_pas_les_ecritures(live_store, manager, class_id):
    """Une écriture concurrente aboutit pendant qu'un abonné traite la notification précédente."""
    other = uuid.uuid4()
    workers, seen, received = [], [], []

    def slow(state):
        received.append(state)
        if state is None or state.raised_hands:
            return
        worker = threading.Thread(target=manager.raise_hand, args=(class_id, other))
        workers.append(worker)
        worker.start()
        deadline = time.monotonic() + 2
        while other not in manager.get_session_state(class_id).raised_hands:
            if time.monotonic() > deadline:
                return
            time.sleep(0.01)
        seen.append(other)

    PushSessionObserver(live_store).subscribe(class_id, slow)
    manager.start_session(class_id)
    for worker in workers:
        worker.join(timeout=2)

    assert seen == [other]
    assert received[-1].raised_hands == {other}


def test_push_etat_perime_jamais_livre(live_store, manager, class_id):
    """Une notification plus ancienne que la dernière livrée est ignorée."""
    received = []
    live_store.watch(class_id, received.append)
    manager.start_session(class_id)
    stale = manager.get_session_state(class_id)
    manager.raise_hand(class_id, uuid.uuid4())

    live_store._notify(class_id, 1, stale)

    assert len(received) == 2
    assert len(received[-1].raised_hands) == 1


def test_verrous_de_classe_liberes(live_store, manager, class_id):
    manager.start_session(class_id)
    manager.raise_hand(class_id, uuid.uuid4())
    manager.end_session(class_id)

    assert live_store._locks == {}


# ============================================================
# Mode poll
# ============================================================

def test_poll_enregistre_un_job_et_le_retire(manager, class_id):
    scheduler = MagicMock()
    observer = PollingSessionObserver(manager, scheduler, interval_ms=2000)

    subscription = observer.subscribe(class_id, lambda state: None)

    kwargs = scheduler.add_job.call_args.kwargs
    assert kwargs["trigger"] == "interval"
    assert kwargs["seconds"] == 2
    assert kwargs["id"] == subscription.job_id

    subscription.cancel()
    scheduler.remove_job.assert_called_once_with(subscription.job_id)


def test_poll_livre_seulement_sur_changement(manager, class_id):
    received = []
    subscription = PollingSessionObserver(manager, MagicMock()).subscribe(class_id, received.append)

    subscription.poll()            # première lecture : None
    subscription.poll()            # identique → rien
    manager.start_session(class_id)
    subscription.poll()            # idle → live
    subscription.poll()            # identique → rien
    manager.raise_hand(class_id, uuid.uuid4())
    subscription.poll()
    manager.end_session(class_id)
    subscription.poll()            # live → idle

    assert len(received) == 4
    assert received[0] is None
    assert received[1].raised_hands == set()
    assert len(received[2].raised_hands) == 1
    assert received[3] is None


def test_poll_classe_hors_ligne_livre_none(class_id):
    """is_live=False : la session n'est même pas lue, le client voit « pas de session »."""
    fake_manager = MagicMock()
    fake_manager.is_live.return_value = False
    received = []
    subscription = PollingSessionObserver(fake_manager, MagicMock()).subscribe(class_id, received.append)

    subscription.poll()

    assert received == [None]
    fake_manager.get_session_state.assert_not_called()


def test_poll_tick_en_erreur_reessaye(manager, class_id):
    """Un tick qui échoue est ignoré ; le suivant livre normalement."""
    flaky_manager = MagicMock(wraps=manager)
    flaky_manager.is_live.side_effect = [RuntimeError("réseau"), True]
    manager.start_session(class_id)
    received = []
    subscription = PollingSessionObserver(flaky_manager, MagicMock()).subscribe(class_id, received.append)

    subscription.poll()
    assert received == []

    subscription.poll()
    assert len(received) == 1
    assert received[0].class_id == class_id


def test_poll_apres_annulation_aucune_livraison(manager, class_id):
    received = []
    subscription = PollingSessionObserver(manager, MagicMock()).subscribe(class_id, received.append)
    subscription.cancel()

    manager.start_session(class_id)
    subscription.poll()  # réponse tardive après démontage

    assert received == []


def test_poll_abonne_en_erreur_ne_casse_pas_le_tick(manager, class_id):
    def broken(state):
        raise RuntimeError("boom")

    subscription = PollingSessionObserver(manager, MagicMock()).subscribe(class_id, broken)
    subscription.poll()  # pas d'exception


# ============================================================
# resolve_raised_hands
# ============================================================

def test_resolve_raised_hands_ignore_les_profils_introuvables(manager, class_id):
    known, unknown, failing = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    manager.start_session(class_id)
    for user_id in (known, unknown, failing):
        manager.raise_hand(class_id, user_id)

    def resolve(user_id):
        if user_id == failing:
            raise RuntimeError("timeout")
        if user_id == known:
            return {"id": known, "name": "Alice"}
        return None

    profiles = resolve_raised_hands(manager.get_session_state(class_id), resolve)

    assert profiles == [{"id": known, "name": "Alice"}]


def test_resolve_raised_hands_sans_session():
    assert resolve_raised_hands(None, lambda user_id: None) == []
