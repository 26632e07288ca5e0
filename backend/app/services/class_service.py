"""
Service métier pour le registre des classes.
Une classe appartient à l'enseignant qui la crée (owner_id immuable).
"""

import uuid
import logging
import secrets
import string
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import NotFoundError, PermissionDeniedError
from app.models.school_class import Enrollment, SchoolClass
from app.models.user import User
from app.schemas.school_class import ClassCreate, ClassResponse
from app.schemas.user import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER

logger = logging.getLogger(__name__)

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_LENGTH = 6
JOIN_CODE_ATTEMPTS = 3


def generate_code(length: int) -> str:
    """Code aléatoire en majuscules et chiffres (codes de classe et codes d'accès élève)."""
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


def create_class(db: Session, owner: User, data: ClassCreate) -> ClassResponse:
    """
    Crée une classe pour l'enseignant donné, avec un code d'accès de 6 caractères.
    Lève PermissionDeniedError si l'utilisateur n'est pas enseignant.
    """
    if owner.role not in (ROLE_TEACHER, ROLE_ADMIN):
        raise PermissionDeniedError("Seul un enseignant peut créer une classe.")

    # Collision de join_code improbable mais possible : on retente avec un autre code
    for _ in range(JOIN_CODE_ATTEMPTS):
        school_class = SchoolClass(
            owner_id=owner.id,
            title=data.title,
            description=data.description,
            join_code=generate_code(JOIN_CODE_LENGTH),
            is_live=False,
        )
        db.add(school_class)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            continue
        db.refresh(school_class)
        logger.info("Classe créée : %s (%s) par %s", school_class.title, school_class.id, owner.id)
        return _to_response(db, school_class)

    raise ValueError("Impossible de générer un code de classe unique, réessayez.")


def get_classes_for_user(db: Session, user: User) -> list[ClassResponse]:
    """
    Enseignant : ses classes, de la plus récente à la plus ancienne.
    Élève : les classes où il est inscrit. Admin : toutes les classes.
    """
    query = select(SchoolClass).order_by(SchoolClass.created_at.desc())
    if user.role == ROLE_TEACHER:
        query = query.where(SchoolClass.owner_id == user.id)
    elif user.role == ROLE_STUDENT:
        query = query.join(Enrollment, Enrollment.class_id == SchoolClass.id).where(
            Enrollment.student_id == user.id
        )

    classes = db.execute(query).scalars().all()
    return [_to_response(db, c) for c in classes]


def get_class(db: Session, class_id: uuid.UUID) -> Optional[ClassResponse]:
    """Retourne une classe par son ID, ou None si inexistante."""
    school_class = db.get(SchoolClass, class_id)
    if school_class is None:
        return None
    return _to_response(db, school_class)


def get_class_record(db: Session, class_id: uuid.UUID) -> SchoolClass:
    """Retourne le modèle SQLAlchemy de la classe. Lève NotFoundError si inexistante."""
    school_class = db.get(SchoolClass, class_id)
    if school_class is None:
        raise NotFoundError("Classe introuvable.")
    return school_class


def _to_response(db: Session, school_class: SchoolClass) -> ClassResponse:
    """Construit le schéma de réponse avec le nombre d'élèves inscrits."""
    nb_students = db.execute(
        select(func.count())
        .select_from(Enrollment)
        .where(Enrollment.class_id == school_class.id)
    ).scalar() or 0

    return ClassResponse(
        id=school_class.id,
        owner_id=school_class.owner_id,
        title=school_class.title,
        description=school_class.description,
        join_code=school_class.join_code,
        is_live=bool(school_class.is_live),
        nb_students=nb_students,
        created_at=school_class.created_at,
    )
