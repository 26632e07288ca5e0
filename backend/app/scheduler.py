"""
Planificateur APScheduler partagé par le processus.

- jobs de polling des sessions live (ajoutés / retirés par PollingSessionObserver)
- réconciliation périodique is_live ↔ live_sessions toutes les 5 minutes
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _reconcile_live_sessions() -> None:
    """
    Tâche planifiée : une classe live sans session (ou l'inverse) est réparée.
    Import local pour éviter les imports circulaires.
    """
    from app.dependencies import get_session_store
    from app.services.session_store import SqlSessionStore

    store = get_session_store()
    if not isinstance(store, SqlSessionStore):
        return
    try:
        fixed = store.reconcile()
    except Exception as exc:
        logger.error("Erreur lors de la réconciliation des sessions live : %s", exc)
        return
    if fixed:
        logger.warning("Réconciliation : %d classe(s) live incohérente(s) corrigée(s)", fixed)


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        _reconcile_live_sessions,
        trigger="interval",
        minutes=5,
        id="live_session_reconcile",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler démarré : réconciliation des sessions live toutes les 5 minutes.")


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
