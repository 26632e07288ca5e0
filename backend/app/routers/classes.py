"""
Router pour le registre des classes, les inscriptions et les statistiques.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.database import get_db
from app.dependencies import get_score_provider
from app.errors import NotFoundError, PermissionDeniedError
from app.models.user import User
from app.schemas.analytics import StudentAnalytics
from app.schemas.school_class import (
    ClassCreate,
    ClassResponse,
    EnrollmentResponse,
    StudentEnrollCreate,
    StudentEnrollResponse,
)
from app.schemas.user import UserResponse
from app.services import analytics_service, class_service, enrollment_service, policy
from app.services.analytics_service import ScoreProvider

router = APIRouter(prefix="/api/v1/classes", tags=["Classes"])


@router.post("", response_model=ClassResponse, status_code=201, summary="Créer une classe")
def create_class(data: ClassCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Crée une classe appartenant à l'enseignant connecté, avec un code d'accès."""
    try:
        return class_service.create_class(db, user, data)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("", response_model=List[ClassResponse], summary="Lister mes classes")
def list_classes(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Enseignant : ses classes. Élève : ses inscriptions. Admin : toutes."""
    return class_service.get_classes_for_user(db, user)


@router.get("/{class_id}", response_model=ClassResponse, summary="Détail d'une classe")
def get_class(class_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        policy.ensure_class_member(db, user, class_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    school_class = class_service.get_class(db, class_id)
    if school_class is None:
        raise HTTPException(status_code=404, detail="Classe introuvable.")
    return school_class


# --- Inscriptions ---

@router.get("/{class_id}/students", response_model=List[UserResponse], summary="Élèves inscrits")
def list_students(class_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        policy.ensure_class_owner(db, user, class_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return enrollment_service.get_class_students(db, class_id)


@router.post("/{class_id}/students", response_model=StudentEnrollResponse, status_code=201,
             summary="Créer un élève et l'inscrire")
def create_student(
    class_id: uuid.UUID,
    data: StudentEnrollCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Crée un compte élève avec un code d'accès de 8 caractères et l'inscrit dans la classe.
    Le code n'est retourné qu'ici : l'enseignant le transmet à l'élève.
    """
    try:
        policy.ensure_class_owner(db, user, class_id)
        return enrollment_service.create_student_and_enroll(db, class_id, data.name)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.put("/{class_id}/students/{student_id}", response_model=EnrollmentResponse,
            summary="Inscrire un élève existant")
def enroll_student(
    class_id: uuid.UUID,
    student_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Inscription idempotente : un élève déjà inscrit n'est pas dupliqué."""
    try:
        policy.ensure_class_owner(db, user, class_id)
        return enrollment_service.enroll_student(db, class_id, student_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))


# --- Statistiques ---

@router.get("/{class_id}/analytics", response_model=List[StudentAnalytics], summary="Statistiques de la classe")
def get_analytics(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    scorer: ScoreProvider = Depends(get_score_provider),
):
    """Score et assiduité par élève inscrit (valeurs de démonstration, voir analytics_service)."""
    try:
        policy.ensure_class_owner(db, user, class_id)
        return analytics_service.get_class_analytics(db, class_id, scorer)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
