"""
Schémas Pydantic pour l'état d'une session live.

LiveSessionState est l'enregistrement partagé observé par tous les clients.
raised_hands et active_speakers sont des ensembles (ordre sans importance).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, Field

from app.schemas.user import UserSummary


class StreamMode(str, Enum):
    CAMERA = "camera"
    SCREEN = "screen"
    WHITEBOARD = "whiteboard"


class LiveSessionState(BaseModel):
    class_id: uuid.UUID
    mode: StreamMode = StreamMode.CAMERA
    raised_hands: Set[uuid.UUID] = Field(default_factory=set)
    active_speakers: Set[uuid.UUID] = Field(default_factory=set)
    started_at: datetime

    model_config = {"from_attributes": True}


class ModeUpdate(BaseModel):
    mode: StreamMode


class LiveSessionResponse(BaseModel):
    """Réponse de GET /live : session=None signifie « pas de session en cours »."""
    class_id: uuid.UUID
    is_live: bool
    session: Optional[LiveSessionState] = None
    raised_hand_profiles: List[UserSummary] = []
