"""
Modèles SQLAlchemy pour les contenus d'une classe : vidéos, examens,
messages du forum et traits du tableau blanc.
Aucun invariant entre enregistrements hormis le rattachement à la classe.
"""

import uuid
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class Video(Base):
    __tablename__ = "videos"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    storage_url = Column(String(1000), nullable=False)
    duration = Column(Integer, default=0)  # secondes, non extrait à l'upload
    mime_type = Column(String(100), nullable=True)
    uploaded_at = Column(DateTime, server_default=func.now())


class Exam(Base):
    __tablename__ = "exams"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    time_limit_minutes = Column(Integer, nullable=False, default=60)
    questions = Column(JSON, nullable=False, default=list)  # Liste de questions sérialisées
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())


class ForumPost(Base):
    __tablename__ = "forum_posts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    author_name = Column(String(200), nullable=False)  # Dénormalisé pour l'affichage
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    replies = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())


class WhiteboardStroke(Base):
    """Trait du tableau blanc, rejoué côté client dans l'ordre de timestamp."""
    __tablename__ = "whiteboard_strokes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    color = Column(String(20), nullable=False)
    line_width = Column(Float, nullable=False)
    points = Column(JSON, nullable=False)  # [{"x": .., "y": ..}, ...]
    kind = Column(String(10), nullable=False, default="draw")  # draw, erase
    timestamp = Column(Float, nullable=False)  # ms epoch côté client
