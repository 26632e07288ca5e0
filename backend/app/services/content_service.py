"""
Service métier pour les contenus d'une classe : vidéos, examens QCM,
forum et tableau blanc. Simples collections rattachées à la classe.
"""

import uuid
import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.models.content import Exam, ForumPost, Video, WhiteboardStroke
from app.models.user import User
from app.schemas.content import (
    ExamCreate,
    ExamResponse,
    ForumPostCreate,
    ForumPostResponse,
    StrokeCreate,
    StrokeResponse,
    VideoResponse,
)
from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)


# --- Vidéos ---

def upload_video(
    db: Session,
    storage: StorageService,
    class_id: uuid.UUID,
    teacher: User,
    title: str,
    filename: str,
    payload: bytes,
    mime_type: Optional[str] = None,
) -> VideoResponse:
    """
    Envoie le fichier dans le stockage objet puis enregistre la vidéo.
    Lève UploadError si le stockage échoue (aucune ligne n'est créée).
    La durée n'est pas extraite : 0 par défaut.
    """
    url = storage.upload(f"classes/{class_id}/videos", filename, payload)

    video = Video(
        id=uuid.uuid4(),
        class_id=class_id,
        teacher_id=teacher.id,
        title=title.strip() or filename,
        storage_url=url,
        duration=0,
        mime_type=mime_type,
    )
    db.add(video)
    db.commit()
    db.refresh(video)
    logger.info("Vidéo ajoutée : %s (%s) → classe %s", video.title, video.id, class_id)
    return VideoResponse.model_validate(video)


def get_videos(db: Session, class_id: uuid.UUID) -> list[VideoResponse]:
    """Vidéos de la classe, de la plus récente à la plus ancienne."""
    videos = db.execute(
        select(Video).where(Video.class_id == class_id).order_by(Video.uploaded_at.desc())
    ).scalars().all()
    return [VideoResponse.model_validate(v) for v in videos]


# --- Examens ---

def create_exam(db: Session, class_id: uuid.UUID, teacher: User, data: ExamCreate) -> ExamResponse:
    """Crée un examen actif. Les questions sont stockées telles quelles (colonne JSON)."""
    exam = Exam(
        id=uuid.uuid4(),
        class_id=class_id,
        teacher_id=teacher.id,
        title=data.title,
        description=data.description,
        time_limit_minutes=data.time_limit_minutes,
        questions=[q.model_dump(mode="json") for q in data.questions],
        active=True,
    )
    db.add(exam)
    db.commit()
    db.refresh(exam)
    logger.info("Examen créé : %s (%d questions) → classe %s", exam.title, len(data.questions), class_id)
    return ExamResponse.model_validate(exam)


def get_exams(db: Session, class_id: uuid.UUID) -> list[ExamResponse]:
    exams = db.execute(
        select(Exam).where(Exam.class_id == class_id).order_by(Exam.created_at.desc())
    ).scalars().all()
    return [ExamResponse.model_validate(e) for e in exams]


def upload_exam_image(storage: StorageService, class_id: uuid.UUID, filename: str, payload: bytes) -> str:
    """Image illustrant une question. Retourne l'URL à placer dans Question.image_url."""
    return storage.upload(f"classes/{class_id}/exam-images", filename, payload)


# --- Forum ---

def create_post(db: Session, class_id: uuid.UUID, author: User, data: ForumPostCreate) -> ForumPostResponse:
    post = ForumPost(
        id=uuid.uuid4(),
        class_id=class_id,
        author_id=author.id,
        author_name=author.name,
        title=data.title,
        body=data.body,
        replies=0,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return ForumPostResponse.model_validate(post)


def get_posts(db: Session, class_id: uuid.UUID) -> list[ForumPostResponse]:
    """Messages du forum, du plus récent au plus ancien."""
    posts = db.execute(
        select(ForumPost).where(ForumPost.class_id == class_id).order_by(ForumPost.created_at.desc())
    ).scalars().all()
    return [ForumPostResponse.model_validate(p) for p in posts]


# --- Tableau blanc ---

def add_stroke(db: Session, class_id: uuid.UUID, user: User, data: StrokeCreate) -> StrokeResponse:
    stroke = WhiteboardStroke(
        id=uuid.uuid4(),
        class_id=class_id,
        user_id=user.id,
        color=data.color,
        line_width=data.line_width,
        points=[p.model_dump() for p in data.points],
        kind=data.kind,
        timestamp=data.timestamp,
    )
    db.add(stroke)
    db.commit()
    return StrokeResponse.model_validate(stroke)


def get_strokes(db: Session, class_id: uuid.UUID) -> list[StrokeResponse]:
    """Traits dans l'ordre de dessin, pour rejouer le tableau côté client."""
    strokes = db.execute(
        select(WhiteboardStroke)
        .where(WhiteboardStroke.class_id == class_id)
        .order_by(WhiteboardStroke.timestamp.asc())
    ).scalars().all()
    return [StrokeResponse.model_validate(s) for s in strokes]


def clear_whiteboard(db: Session, class_id: uuid.UUID) -> int:
    """Efface tous les traits de la classe. Retourne le nombre de traits supprimés."""
    count = db.execute(
        delete(WhiteboardStroke).where(WhiteboardStroke.class_id == class_id)
    ).rowcount
    db.commit()
    logger.info("Tableau blanc effacé : classe %s (%d traits)", class_id, count)
    return count
