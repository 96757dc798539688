# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, la relation Student.student_type échoue si student_type.py
# n'est pas chargé avant la première requête.

from studyhall.models.branch import Branch  # noqa: F401  — doit précéder student
from studyhall.models.student_type import (  # noqa: F401
    DateAssignment, DateTypeDefinition, StudentType, WeeklyGoalSetting,
)
from studyhall.models.student import Student, StudentAccessLink  # noqa: F401
from studyhall.models.attendance import AttendanceEvent  # noqa: F401
from studyhall.models.subject import StudySubject  # noqa: F401
from studyhall.models.point import Point, WeeklyPointOutcome  # noqa: F401
from studyhall.models.notification import StudentNotification  # noqa: F401
from studyhall.models.access_sync_log import AccessSyncLog  # noqa: F401
