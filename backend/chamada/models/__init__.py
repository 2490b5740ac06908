# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, les FK comme attendance_sessions.professor_user_id → users.id
# échouent avec NoReferencedTableError si user.py n'est pas chargé en premier.

from chamada.models.user import User  # noqa: F401  — doit précéder les autres
from chamada.models.student import Student  # noqa: F401
from chamada.models.school_class import SchoolClass, ClassStudent, Subject, ClassSubject  # noqa: F401
from chamada.models.attendance_session import AttendanceSession  # noqa: F401
from chamada.models.attendance_record import AttendanceRecord  # noqa: F401
from chamada.models.attendance_adjustment import AttendanceAdjustment  # noqa: F401
