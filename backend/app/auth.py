"""
Résolution de l'utilisateur courant.

L'authentification est faite par le fournisseur d'identité en amont (passerelle) ;
l'API reçoit l'identifiant vérifié dans l'en-tête X-User-Id et charge le profil.
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.services import user_service


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Dépendance FastAPI. 401 si l'en-tête est absent, invalide ou inconnu."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentification requise.")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Identifiant utilisateur invalide.")

    user = user_service.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Utilisateur inconnu.")
    return user
