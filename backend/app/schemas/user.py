"""
Schémas Pydantic pour les profils utilisateurs et la connexion élève.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator

ROLE_TEACHER = "teacher"
ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"
VALID_ROLES = {ROLE_TEACHER, ROLE_STUDENT, ROLE_ADMIN}


class UserCreate(BaseModel):
    """Provisionnement d'un profil enseignant ou admin (les élèves passent par l'inscription)."""
    name: str
    role: str
    email: Optional[EmailStr] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom ne peut pas être vide.")
        return v.strip()

    @field_validator("role")
    @classmethod
    def valid_role(cls, v: str) -> str:
        if v not in (ROLE_TEACHER, ROLE_ADMIN):
            raise ValueError("Rôle invalide. Valeurs acceptées : teacher, admin")
        return v


class UserResponse(BaseModel):
    id: uuid.UUID
    role: str
    name: str
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    """Profil réduit affiché dans la liste des mains levées."""
    id: uuid.UUID
    name: str

    model_config = {"from_attributes": True}


class StudentLogin(BaseModel):
    code: str

    @field_validator("code")
    @classmethod
    def code_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le code d'accès ne peut pas être vide.")
        return v.strip().upper()
