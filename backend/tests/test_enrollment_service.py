"""
Tests unitaires pour les inscriptions et la création de comptes élèves.
"""

import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from app.errors import NotFoundError
from app.models.school_class import Enrollment
from app.models.user import User
from app.services.class_service import JOIN_CODE_ALPHABET
from app.services.enrollment_service import (
    create_student_and_enroll,
    enroll_student,
    is_enrolled,
)


# --- Helpers ---

def make_db(school_class=MagicMock(), student=None, existing=None):
    """db.get retourne la classe puis l'élève ; .scalar() = inscription existante."""
    db = MagicMock()
    db.get.side_effect = lambda model, _id: school_class if model.__name__ == "SchoolClass" else student
    db.execute.return_value.scalar.return_value = existing
    return db


def make_student():
    s = MagicMock()
    s.id = uuid.uuid4()
    s.role = "student"
    return s


# ============================================================
# enroll_student
# ============================================================

def test_enroll_student_succes():
    student = make_student()
    class_id = uuid.uuid4()
    db = make_db(student=student)

    result = enroll_student(db, class_id, student.id)

    db.add.assert_called_once()
    db.commit.assert_called_once()
    assert result.class_id == class_id
    assert result.student_id == student.id


def test_enroll_student_deja_inscrit_pas_de_doublon():
    student = make_student()
    class_id = uuid.uuid4()
    existing = Enrollment(id=uuid.uuid4(), class_id=class_id, student_id=student.id)
    db = make_db(student=student, existing=existing)

    result = enroll_student(db, class_id, student.id)

    db.add.assert_not_called()
    assert result.id == existing.id


def test_enroll_student_classe_inexistante():
    with pytest.raises(NotFoundError, match="Classe"):
        enroll_student(make_db(school_class=None), uuid.uuid4(), uuid.uuid4())


def test_enroll_student_pas_un_eleve():
    teacher = make_student()
    teacher.role = "teacher"
    with pytest.raises(NotFoundError, match="Élève"):
        enroll_student(make_db(student=teacher), uuid.uuid4(), teacher.id)


# ============================================================
# create_student_and_enroll
# ============================================================

def test_create_student_and_enroll_succes():
    class_id = uuid.uuid4()
    db = make_db()

    result = create_student_and_enroll(db, class_id, "Alice")

    student, enrollment = [c[0][0] for c in db.add.call_args_list]
    assert isinstance(student, User)
    assert student.role == "student"
    assert student.credential_code == result.code
    assert student.email.startswith(result.code.lower() + "@")
    assert isinstance(enrollment, Enrollment)
    assert enrollment.student_id == student.id
    assert len(result.code) == 8
    assert all(ch in JOIN_CODE_ALPHABET for ch in result.code)
    assert result.enrollment.class_id == class_id
    db.commit.assert_called_once()


def test_create_student_and_enroll_collision_de_code():
    db = make_db()
    db.flush.side_effect = [IntegrityError("duplicate", None, None), None]

    result = create_student_and_enroll(db, uuid.uuid4(), "Bob")

    db.rollback.assert_called_once()
    assert result.name == "Bob"


def test_create_student_and_enroll_classe_inexistante():
    db = make_db(school_class=None)
    with pytest.raises(NotFoundError):
        create_student_and_enroll(db, uuid.uuid4(), "Alice")
    db.add.assert_not_called()


# ============================================================
# is_enrolled
# ============================================================

def test_is_enrolled():
    db = MagicMock()
    db.execute.return_value.scalar.return_value = uuid.uuid4()
    assert is_enrolled(db, uuid.uuid4(), uuid.uuid4()) is True

    db.execute.return_value.scalar.return_value = None
    assert is_enrolled(db, uuid.uuid4(), uuid.uuid4()) is False
