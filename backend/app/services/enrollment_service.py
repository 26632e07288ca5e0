"""
Service métier pour les inscriptions élève ↔ classe.

Les inscriptions sont append-only : aucune opération de désinscription.
Un élève créé par l'enseignant reçoit un code d'accès de 8 caractères
qui lui sert d'identifiant de connexion.
"""

import uuid
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import NotFoundError
from app.models.school_class import Enrollment, SchoolClass
from app.models.user import User
from app.schemas.school_class import EnrollmentResponse, StudentEnrollResponse
from app.schemas.user import ROLE_STUDENT, UserResponse
from app.services.class_service import generate_code

logger = logging.getLogger(__name__)

ACCESS_CODE_LENGTH = 8
ACCESS_CODE_ATTEMPTS = 3


def enroll_student(db: Session, class_id: uuid.UUID, student_id: uuid.UUID) -> EnrollmentResponse:
    """
    Inscrit un élève existant dans une classe.
    Un élève déjà inscrit n'est pas dupliqué : l'inscription existante est retournée.
    Lève NotFoundError si la classe ou l'élève est introuvable.
    """
    if db.get(SchoolClass, class_id) is None:
        raise NotFoundError("Classe introuvable.")
    student = db.get(User, student_id)
    if student is None or student.role != ROLE_STUDENT:
        raise NotFoundError("Élève introuvable.")

    existing = db.execute(
        select(Enrollment).where(Enrollment.class_id == class_id, Enrollment.student_id == student_id)
    ).scalar()
    if existing is not None:
        return EnrollmentResponse.model_validate(existing)

    enrollment = Enrollment(id=uuid.uuid4(), class_id=class_id, student_id=student_id)
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    logger.info("Élève %s inscrit dans la classe %s", student_id, class_id)
    return EnrollmentResponse.model_validate(enrollment)


def create_student_and_enroll(db: Session, class_id: uuid.UUID, name: str) -> StudentEnrollResponse:
    """
    Crée un profil élève avec un code d'accès et l'inscrit dans la classe,
    dans une seule transaction.
    Lève NotFoundError si la classe est introuvable.
    """
    if db.get(SchoolClass, class_id) is None:
        raise NotFoundError("Classe introuvable.")

    for _ in range(ACCESS_CODE_ATTEMPTS):
        code = generate_code(ACCESS_CODE_LENGTH)
        student = User(
            id=uuid.uuid4(),
            role=ROLE_STUDENT,
            name=name,
            credential_code=code,
            email=f"{code.lower()}@{settings.STUDENT_EMAIL_DOMAIN}",
        )
        db.add(student)
        try:
            db.flush()  # Détecte une collision de code avant l'inscription
        except IntegrityError:
            db.rollback()
            continue

        enrollment = Enrollment(id=uuid.uuid4(), class_id=class_id, student_id=student.id)
        db.add(enrollment)
        db.commit()
        db.refresh(enrollment)

        logger.info("Élève créé et inscrit : %s (%s) → classe %s", name, student.id, class_id)
        return StudentEnrollResponse(
            student_id=student.id,
            name=student.name,
            code=code,
            enrollment=EnrollmentResponse.model_validate(enrollment),
        )

    raise ValueError("Impossible de générer un code d'accès unique, réessayez.")


def is_enrolled(db: Session, class_id: uuid.UUID, student_id: uuid.UUID) -> bool:
    return db.execute(
        select(Enrollment.id).where(Enrollment.class_id == class_id, Enrollment.student_id == student_id)
    ).scalar() is not None


def get_class_students(db: Session, class_id: uuid.UUID) -> list[UserResponse]:
    """Élèves inscrits dans la classe, triés par nom."""
    students = db.execute(
        select(User)
        .join(Enrollment, Enrollment.student_id == User.id)
        .where(Enrollment.class_id == class_id)
        .order_by(User.name)
    ).scalars().all()
    return [UserResponse.model_validate(s) for s in students]
