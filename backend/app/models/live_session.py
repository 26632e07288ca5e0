"""
Modèles SQLAlchemy pour les sessions live.

Une ligne live_sessions existe si et seulement si classes.is_live est vrai.
Les mains levées et les orateurs sont des ensembles : une ligne par
(classe, utilisateur, type) dans live_session_members, clé primaire composite.
"""

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base

MEMBER_HAND = "HAND"
MEMBER_SPEAKER = "SPEAKER"


class LiveSession(Base):
    __tablename__ = "live_sessions"

    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True)
    mode = Column(String(20), nullable=False, default="camera")  # camera, screen, whiteboard
    started_at = Column(DateTime(timezone=True), nullable=False)


class LiveSessionMember(Base):
    """Appartenance d'un utilisateur à raised_hands (HAND) ou active_speakers (SPEAKER)."""
    __tablename__ = "live_session_members"

    class_id = Column(
        UUID(as_uuid=True), ForeignKey("live_sessions.class_id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(UUID(as_uuid=True), primary_key=True)
    kind = Column(String(10), primary_key=True)  # HAND, SPEAKER
