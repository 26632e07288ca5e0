"""
Router pour les profils utilisateurs et la connexion élève par code.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.user import StudentLogin, UserCreate, UserResponse
from app.services import user_service

router = APIRouter(prefix="/api/v1", tags=["Utilisateurs"])


@router.post("/users", response_model=UserResponse, status_code=201, summary="Provisionner un profil")
def create_user(data: UserCreate, db: Session = Depends(get_db)):
    """Crée un profil enseignant ou admin. Les élèves sont créés depuis leur classe."""
    try:
        return user_service.create_user(db, data)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/users/me", response_model=UserResponse, summary="Profil courant")
def get_me(user: User = Depends(get_current_user)):
    return user


@router.get("/users/{user_id}", response_model=UserResponse, summary="Résoudre un utilisateur")
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    user = user_service.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="Utilisateur introuvable.")
    return user


@router.post("/auth/student-login", response_model=UserResponse, summary="Connexion élève par code")
def student_login(data: StudentLogin, db: Session = Depends(get_db)):
    """Retourne le profil de l'élève correspondant au code d'accès fourni par l'enseignant."""
    user = user_service.login_student(db, data.code)
    if user is None:
        raise HTTPException(status_code=401, detail="Code d'accès invalide.")
    return user
