"""
Modèles SQLAlchemy pour les classes et les inscriptions.
Nommé school_class pour éviter le conflit avec le mot-clé Python 'class'.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class SchoolClass(Base):
    __tablename__ = "classes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)  # Immuable
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    join_code = Column(String(12), unique=True, nullable=True)
    is_live = Column(Boolean, default=False, nullable=False)  # Modifié uniquement par le LiveSessionManager
    created_at = Column(DateTime, server_default=func.now())


class Enrollment(Base):
    """Association classe ↔ élèves. Append-only : aucune désinscription."""
    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("class_id", "student_id", name="uq_enrollment_class_student"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    enrolled_at = Column(DateTime, server_default=func.now())
