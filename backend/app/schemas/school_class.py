"""
Schémas Pydantic pour les classes et les inscriptions.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class ClassCreate(BaseModel):
    title: str
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre de la classe ne peut pas être vide.")
        return v.strip()


class ClassResponse(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: Optional[str]
    join_code: Optional[str]
    is_live: bool
    nb_students: int
    created_at: datetime

    model_config = {"from_attributes": True}


class StudentEnrollCreate(BaseModel):
    """Corps de requête pour créer un élève et l'inscrire directement."""
    name: str

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom de l'élève ne peut pas être vide.")
        return v.strip()


class EnrollmentResponse(BaseModel):
    id: uuid.UUID
    class_id: uuid.UUID
    student_id: uuid.UUID
    enrolled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StudentEnrollResponse(BaseModel):
    """Élève créé + code d'accès à transmettre (affiché une seule fois à l'enseignant)."""
    student_id: uuid.UUID
    name: str
    code: str
    enrollment: EnrollmentResponse
