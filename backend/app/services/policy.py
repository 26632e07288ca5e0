"""
Contrôles d'accès à la frontière HTTP.

Les commandes enseignant (démarrer / arrêter, mode, parole) exigent d'être
propriétaire de la classe ; les commandes élève exigent d'y être inscrit.
Un admin passe tous les contrôles.
"""

import uuid

from sqlalchemy.orm import Session

from app.errors import PermissionDeniedError
from app.models.school_class import SchoolClass
from app.models.user import User
from app.schemas.user import ROLE_ADMIN, ROLE_STUDENT
from app.services import class_service, enrollment_service


def ensure_class_owner(db: Session, user: User, class_id: uuid.UUID) -> SchoolClass:
    """Lève NotFoundError si la classe n'existe pas, PermissionDeniedError si user n'en est pas propriétaire."""
    school_class = class_service.get_class_record(db, class_id)
    if user.role == ROLE_ADMIN or school_class.owner_id == user.id:
        return school_class
    raise PermissionDeniedError("Seul l'enseignant de la classe peut effectuer cette action.")


def ensure_class_member(db: Session, user: User, class_id: uuid.UUID) -> SchoolClass:
    """Propriétaire, admin ou élève inscrit."""
    school_class = class_service.get_class_record(db, class_id)
    if user.role == ROLE_ADMIN or school_class.owner_id == user.id:
        return school_class
    if user.role == ROLE_STUDENT and enrollment_service.is_enrolled(db, class_id, user.id):
        return school_class
    raise PermissionDeniedError("Vous n'êtes pas inscrit dans cette classe.")


def ensure_self_or_owner(db: Session, user: User, class_id: uuid.UUID, target_id: uuid.UUID) -> SchoolClass:
    """Un élève agit sur lui-même (main levée) ; l'enseignant peut agir sur n'importe quel élève."""
    if user.id != target_id:
        return ensure_class_owner(db, user, class_id)
    return ensure_class_member(db, user, class_id)
