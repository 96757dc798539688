"""
Service d'attribution des points automatiques (récompenses / pénalités).
"""

import logging
import uuid

from sqlalchemy.orm import Session

from studyhall.models.point import POINT_PENALTY, POINT_REWARD, Point

logger = logging.getLogger(__name__)


def award_auto_point(
    db: Session,
    student_id: uuid.UUID,
    point_type: str,
    amount: int,
    reason: str,
) -> Point:
    """
    Ajoute un point is_auto = True et flush pour obtenir son id.
    Le commit reste à la charge de l'appelant (même transaction que l'historique hebdomadaire).
    """
    if point_type not in (POINT_REWARD, POINT_PENALTY):
        raise ValueError(f"Type de point invalide : {point_type}")
    if amount <= 0:
        raise ValueError("Le montant d'un point doit être strictement positif.")

    point = Point(
        id=uuid.uuid4(),
        student_id=student_id,
        type=point_type,
        amount=amount,
        reason=reason,
        is_auto=True,
    )
    db.add(point)
    db.flush()
    logger.debug("Point %s de %d préparé pour l'élève %s", point_type, amount, student_id)
    return point
