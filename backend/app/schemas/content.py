"""
Schémas Pydantic pour les vidéos, examens, messages du forum et tableau blanc.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_QUESTION_KINDS = {"mcq", "text", "boolean"}
VALID_STROKE_KINDS = {"draw", "erase"}


class VideoResponse(BaseModel):
    id: uuid.UUID
    class_id: uuid.UUID
    teacher_id: uuid.UUID
    title: str
    storage_url: str
    duration: int
    mime_type: Optional[str]
    uploaded_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class Question(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    kind: str  # mcq, text, boolean
    body: str
    image_url: Optional[str] = None
    choices: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    points: int = 1

    @field_validator("kind")
    @classmethod
    def valid_kind(cls, v: str) -> str:
        if v not in VALID_QUESTION_KINDS:
            raise ValueError(f"Type de question invalide. Valeurs acceptées : {VALID_QUESTION_KINDS}")
        return v

    @field_validator("points")
    @classmethod
    def points_positive(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Le barème ne peut pas être négatif.")
        return v

    @model_validator(mode="after")
    def mcq_has_choices(self):
        if self.kind == "mcq":
            if not self.choices or len(self.choices) < 2:
                raise ValueError("Une question QCM doit proposer au moins 2 choix.")
            if self.correct_answer is not None and self.correct_answer not in self.choices:
                raise ValueError("La bonne réponse doit faire partie des choix proposés.")
        return self


class ExamCreate(BaseModel):
    title: str
    description: Optional[str] = None
    time_limit_minutes: int = 60
    questions: List[Question] = []

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre de l'examen ne peut pas être vide.")
        return v.strip()

    @field_validator("time_limit_minutes")
    @classmethod
    def time_limit_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("La durée de l'examen doit être positive.")
        return v


class ExamResponse(BaseModel):
    id: uuid.UUID
    class_id: uuid.UUID
    teacher_id: uuid.UUID
    title: str
    description: Optional[str]
    time_limit_minutes: int
    questions: List[Question]
    active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ImageUploadResponse(BaseModel):
    url: str


class ForumPostCreate(BaseModel):
    title: str
    body: str

    @field_validator("title", "body")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre et le message ne peuvent pas être vides.")
        return v.strip()


class ForumPostResponse(BaseModel):
    id: uuid.UUID
    class_id: uuid.UUID
    author_id: uuid.UUID
    author_name: str
    title: str
    body: str
    replies: int = 0
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class Point(BaseModel):
    x: float
    y: float


class StrokeCreate(BaseModel):
    color: str = "#000000"
    line_width: float = 2.0
    points: List[Point]
    kind: str = "draw"
    timestamp: float

    @field_validator("kind")
    @classmethod
    def valid_kind(cls, v: str) -> str:
        if v not in VALID_STROKE_KINDS:
            raise ValueError(f"Type de trait invalide. Valeurs acceptées : {VALID_STROKE_KINDS}")
        return v

    @field_validator("line_width")
    @classmethod
    def width_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("L'épaisseur du trait doit être positive.")
        return v


class StrokeResponse(BaseModel):
    id: uuid.UUID
    class_id: uuid.UUID
    user_id: uuid.UUID
    color: str
    line_width: float
    points: List[Point]
    kind: str
    timestamp: float

    model_config = {"from_attributes": True}
