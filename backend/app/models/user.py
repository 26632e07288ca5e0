"""
Modèle SQLAlchemy pour les profils utilisateurs.
L'authentification elle-même est déléguée au fournisseur d'identité :
on ne stocke ici que le profil (rôle, nom, code d'accès élève).
"""

import uuid
from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    role = Column(String(20), nullable=False)  # teacher, student, admin ; immuable
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    credential_code = Column(String(20), unique=True, nullable=True)  # Code d'accès élève
    avatar_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
