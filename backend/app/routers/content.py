"""
Router pour les contenus d'une classe : vidéos, examens, forum, tableau blanc.
Lecture : membres de la classe. Création : enseignant (sauf forum, ouvert aux élèves).
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.database import get_db
from app.dependencies import get_storage
from app.errors import NotFoundError, PermissionDeniedError, UploadError
from app.models.user import User
from app.schemas.content import (
    ExamCreate,
    ExamResponse,
    ForumPostCreate,
    ForumPostResponse,
    ImageUploadResponse,
    StrokeCreate,
    StrokeResponse,
    VideoResponse,
)
from app.services import content_service, policy
from app.services.storage_service import StorageService

router = APIRouter(prefix="/api/v1/classes", tags=["Contenus"])


def _check(check, db: Session, user: User, class_id: uuid.UUID) -> None:
    """Applique un contrôle de policy et traduit ses erreurs en HTTP."""
    try:
        check(db, user, class_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))


# --- Vidéos ---

@router.get("/{class_id}/videos", response_model=List[VideoResponse], summary="Vidéos de la classe")
def list_videos(class_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _check(policy.ensure_class_member, db, user, class_id)
    return content_service.get_videos(db, class_id)


@router.post("/{class_id}/videos", response_model=VideoResponse, status_code=201, summary="Envoyer une vidéo")
def upload_video(
    class_id: uuid.UUID,
    title: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage),
):
    """Envoie la vidéo dans le stockage objet puis l'enregistre. 502 si le stockage échoue."""
    _check(policy.ensure_class_owner, db, user, class_id)
    payload = file.file.read()
    try:
        return content_service.upload_video(
            db, storage, class_id, user, title, file.filename or "video", payload, file.content_type,
        )
    except UploadError as e:
        raise HTTPException(status_code=502, detail=str(e))


# --- Examens ---

@router.get("/{class_id}/exams", response_model=List[ExamResponse], summary="Examens de la classe")
def list_exams(class_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _check(policy.ensure_class_member, db, user, class_id)
    return content_service.get_exams(db, class_id)


@router.post("/{class_id}/exams", response_model=ExamResponse, status_code=201, summary="Créer un examen")
def create_exam(
    class_id: uuid.UUID,
    data: ExamCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _check(policy.ensure_class_owner, db, user, class_id)
    return content_service.create_exam(db, class_id, user, data)


@router.post("/{class_id}/exams/images", response_model=ImageUploadResponse, status_code=201,
             summary="Envoyer une image de question")
def upload_exam_image(
    class_id: uuid.UUID,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage),
):
    _check(policy.ensure_class_owner, db, user, class_id)
    try:
        url = content_service.upload_exam_image(storage, class_id, file.filename or "image", file.file.read())
    except UploadError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return ImageUploadResponse(url=url)


# --- Forum ---

@router.get("/{class_id}/posts", response_model=List[ForumPostResponse], summary="Messages du forum")
def list_posts(class_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _check(policy.ensure_class_member, db, user, class_id)
    return content_service.get_posts(db, class_id)


@router.post("/{class_id}/posts", response_model=ForumPostResponse, status_code=201, summary="Publier un message")
def create_post(
    class_id: uuid.UUID,
    data: ForumPostCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _check(policy.ensure_class_member, db, user, class_id)
    return content_service.create_post(db, class_id, user, data)


# --- Tableau blanc ---

@router.get("/{class_id}/whiteboard", response_model=List[StrokeResponse], summary="Traits du tableau blanc")
def list_strokes(class_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _check(policy.ensure_class_member, db, user, class_id)
    return content_service.get_strokes(db, class_id)


@router.post("/{class_id}/whiteboard", response_model=StrokeResponse, status_code=201, summary="Ajouter un trait")
def add_stroke(
    class_id: uuid.UUID,
    data: StrokeCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _check(policy.ensure_class_owner, db, user, class_id)
    return content_service.add_stroke(db, class_id, user, data)


@router.delete("/{class_id}/whiteboard", status_code=200, summary="Effacer le tableau blanc")
def clear_whiteboard(class_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _check(policy.ensure_class_owner, db, user, class_id)
    count = content_service.clear_whiteboard(db, class_id)
    return {"class_id": str(class_id), "deleted_count": count}
