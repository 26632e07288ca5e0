# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, les FK comme classes.owner_id → users.id échouent
# avec NoReferencedTableError si user.py n'est pas chargé avant school_class.py.

from app.models.user import User  # noqa: F401  (doit précéder school_class)
from app.models.school_class import SchoolClass, Enrollment  # noqa: F401
from app.models.live_session import LiveSession, LiveSessionMember  # noqa: F401
from app.models.content import Exam, ForumPost, Video, WhiteboardStroke  # noqa: F401
