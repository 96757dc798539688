"""
Service de notifications in-app des élèves.

Du point de vue du moteur, l'envoi est « fire-and-forget » : un échec est journalisé
et annulé sans remettre en cause ce qui a déjà été commité par l'appelant.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studyhall.models.notification import StudentNotification

logger = logging.getLogger(__name__)

NOTIFICATION_POINT = "point"


def notify_student(
    db: Session,
    student_id: uuid.UUID,
    notification_type: str,
    title: str,
    message: str,
    link: Optional[str] = None,
) -> bool:
    """Persiste une notification dans sa propre transaction. Retourne False en cas d'échec."""
    try:
        db.add(
            StudentNotification(
                student_id=student_id,
                type=notification_type,
                title=title,
                message=message,
                link=link,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Notification non enregistrée pour l'élève %s : %s", student_id, exc)
        return False
    return True
