"""
Service métier pour les profils utilisateurs.
Le fournisseur d'identité authentifie ; on résout ici « qui agit ».
"""

import uuid
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.user import User
from app.schemas.user import ROLE_STUDENT, UserCreate, UserResponse

logger = logging.getLogger(__name__)


def create_user(db: Session, data: UserCreate) -> UserResponse:
    """
    Provisionne un profil enseignant ou admin. Le rôle n'est plus modifiable ensuite.
    Lève une ValueError si l'email est déjà utilisé.
    """
    user = User(id=uuid.uuid4(), name=data.name, role=data.role, email=data.email)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValueError(f"Un utilisateur avec l'email '{data.email}' existe déjà.")
    db.refresh(user)
    logger.info("Profil %s créé : %s (%s)", user.role, user.name, user.id)
    return UserResponse.model_validate(user)


def get_user(db: Session, user_id: uuid.UUID) -> Optional[User]:
    """Retourne le profil par son ID, ou None s'il n'existe pas."""
    return db.get(User, user_id)


def login_student(db: Session, code: str) -> Optional[User]:
    """Retrouve l'élève correspondant à un code d'accès, ou None."""
    return db.execute(
        select(User).where(User.role == ROLE_STUDENT, User.credential_code == code.strip().upper())
    ).scalar()
