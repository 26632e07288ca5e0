"""
Router pour les sessions live d'une classe : démarrage / arrêt, mode de diffusion,
mains levées, droits de parole, et flux d'événements (Server-Sent Events).

Commandes enseignant : propriétaire de la classe uniquement.
Main levée : l'élève pour lui-même ; l'enseignant peut baisser la main de n'importe qui.
"""

import asyncio
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.auth import get_current_user
from app.database import get_db
from app.dependencies import get_live_manager, get_session_observer
from app.errors import NotFoundError, PermissionDeniedError
from app.models.user import User
from app.schemas.live_session import LiveSessionResponse, LiveSessionState, ModeUpdate
from app.schemas.user import UserSummary
from app.services import policy, user_service
from app.services.live_session_service import LiveSessionManager
from app.services.session_observer import SessionObserver, resolve_raised_hands

router = APIRouter(prefix="/api/v1/classes", tags=["Sessions live"])

# Commentaire SSE envoyé si aucun changement, pour garder la connexion ouverte
KEEP_ALIVE_SECONDS = 15


def _to_http_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PermissionDeniedError):
        return HTTPException(status_code=403, detail=str(exc))
    # SessionNotLiveError (mode strict) et autres conflits
    return HTTPException(status_code=409, detail=str(exc))


def _build_response(db: Session, class_id: uuid.UUID, state) -> LiveSessionResponse:
    profiles = resolve_raised_hands(state, lambda user_id: user_service.get_user(db, user_id))
    return LiveSessionResponse(
        class_id=class_id,
        is_live=state is not None,
        session=state,
        raised_hand_profiles=[UserSummary.model_validate(p) for p in profiles],
    )


@router.get("/{class_id}/live", response_model=LiveSessionResponse, summary="État de la session live")
def get_live_session(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    manager: LiveSessionManager = Depends(get_live_manager),
):
    """session=null signifie qu'aucune session n'est en cours."""
    try:
        policy.ensure_class_member(db, user, class_id)
    except ValueError as e:
        raise _to_http_error(e)
    return _build_response(db, class_id, manager.get_session_state(class_id))


@router.post("/{class_id}/live/start", response_model=LiveSessionResponse, summary="Démarrer le live")
def start_session(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    manager: LiveSessionManager = Depends(get_live_manager),
):
    """Passe la classe en live : mode caméra, aucune main levée, aucun orateur."""
    try:
        policy.ensure_class_owner(db, user, class_id)
        state = manager.start_session(class_id)
    except ValueError as e:
        raise _to_http_error(e)
    return _build_response(db, class_id, state)


@router.post("/{class_id}/live/end", status_code=204, summary="Terminer le live")
def end_session(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    manager: LiveSessionManager = Depends(get_live_manager),
):
    """Supprime la session. Terminer une session déjà terminée n'est pas une erreur."""
    try:
        policy.ensure_class_owner(db, user, class_id)
    except ValueError as e:
        raise _to_http_error(e)
    manager.end_session(class_id)


@router.put("/{class_id}/live/mode", response_model=LiveSessionResponse, summary="Changer le mode de diffusion")
def set_mode(
    class_id: uuid.UUID,
    data: ModeUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    manager: LiveSessionManager = Depends(get_live_manager),
):
    try:
        policy.ensure_class_owner(db, user, class_id)
        state = manager.set_mode(class_id, data.mode)
    except ValueError as e:
        raise _to_http_error(e)
    return _build_response(db, class_id, state)


# --- Mains levées ---

@router.post("/{class_id}/live/hands/{user_id}", response_model=LiveSessionResponse, summary="Lever la main")
def raise_hand(
    class_id: uuid.UUID,
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    manager: LiveSessionManager = Depends(get_live_manager),
):
    if user.id != user_id:
        raise HTTPException(status_code=403, detail="On ne peut lever que sa propre main.")
    try:
        policy.ensure_class_member(db, user, class_id)
        state = manager.raise_hand(class_id, user_id)
    except ValueError as e:
        raise _to_http_error(e)
    return _build_response(db, class_id, state)


@router.delete("/{class_id}/live/hands/{user_id}", response_model=LiveSessionResponse, summary="Baisser la main")
def lower_hand(
    class_id: uuid.UUID,
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    manager: LiveSessionManager = Depends(get_live_manager),
):
    try:
        policy.ensure_self_or_owner(db, user, class_id, user_id)
        state = manager.lower_hand(class_id, user_id)
    except ValueError as e:
        raise _to_http_error(e)
    return _build_response(db, class_id, state)


# --- Droits de parole ---

@router.post("/{class_id}/live/speakers/{user_id}", response_model=LiveSessionResponse,
             summary="Donner la parole")
def admit_speaker(
    class_id: uuid.UUID,
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    manager: LiveSessionManager = Depends(get_live_manager),
):
    """Ajoute l'élève aux orateurs et baisse sa main en une seule écriture."""
    try:
        policy.ensure_class_owner(db, user, class_id)
        state = manager.admit_speaker(class_id, user_id)
    except ValueError as e:
        raise _to_http_error(e)
    return _build_response(db, class_id, state)


@router.delete("/{class_id}/live/speakers/{user_id}", response_model=LiveSessionResponse,
               summary="Couper la parole")
def mute_speaker(
    class_id: uuid.UUID,
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    manager: LiveSessionManager = Depends(get_live_manager),
):
    try:
        policy.ensure_class_owner(db, user, class_id)
        state = manager.mute_speaker(class_id, user_id)
    except ValueError as e:
        raise _to_http_error(e)
    return _build_response(db, class_id, state)


# --- Flux d'événements ---

def format_event(state: LiveSessionState) -> str:
    """Trame SSE : data = état complet en JSON, ou null quand la session est terminée."""
    payload = state.model_dump_json() if state is not None else "null"
    return f"event: session\ndata: {payload}\n\n"


@router.get("/{class_id}/live/events", summary="Flux temps réel de la session (SSE)")
async def stream_session(
    class_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    observer: SessionObserver = Depends(get_session_observer),
):
    """
    Envoie l'état courant puis chaque changement (push ou polling selon LIVE_SYNC_MODE).
    L'abonnement est annulé dès que le client se déconnecte.
    """
    try:
        await run_in_threadpool(policy.ensure_class_member, db, user, class_id)
    except ValueError as e:
        raise _to_http_error(e)

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    # Appelé depuis le thread de l'écrivain ou du scheduler
    def on_change(state) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, state)

    subscription = await run_in_threadpool(observer.subscribe, class_id, on_change)

    async def event_stream():
        try:
            while not await request.is_disconnected():
                try:
                    state = await asyncio.wait_for(queue.get(), timeout=KEEP_ALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield format_event(state)
        finally:
            subscription.cancel()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
