"""
Router des déclencheurs batch (cron externe).
Protégés par un secret partagé : Authorization: Bearer <CRON_SECRET>.

Les deux jobs sont idempotents et peuvent être relancés sans risque :
le prochain déclenchement fait office de retry.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response
from sqlalchemy.orm import Session

from studyhall.config import settings
from studyhall.database import get_db
from studyhall.schemas.jobs import JOB_ERROR, AccessSyncSummary, WeeklyEvaluationSummary
from studyhall.services import access_sync_service, weekly_goal_service
from studyhall.services.access_reader import AccessControlReader

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["Jobs batch"])


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """
    Compare l'en-tête Authorization au secret configuré (comparaison à temps constant).
    Sans secret configuré, seul l'environnement de développement est accepté.
    """
    secret = settings.CRON_SECRET
    if not secret:
        if settings.ENV == "development":
            return
        logger.warning("CRON_SECRET non configuré : déclenchement refusé.")
        raise HTTPException(status_code=401, detail="Non autorisé.")

    expected = f"Bearer {secret}".encode("utf-8")
    provided = (authorization or "").encode("utf-8")
    if not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="Non autorisé.")


@router.get(
    "/access-sync",
    response_model=AccessSyncSummary,
    dependencies=[Depends(verify_cron_secret)],
    summary="Importer les passages du contrôle d'accès",
)
def run_access_sync(response: Response, db: Session = Depends(get_db)):
    """
    Importe les nouveaux passages de badge en événements de présence.

    - Idempotent : un passage déjà importé est ignoré
    - 200 avec le rapport si le run a abouti, 500 avec le rapport si le contrôle
      d'accès est injoignable ou si l'insertion a échoué (watermark non avancé)
    """
    with AccessControlReader() as reader:
        summary = access_sync_service.sync_access_events(db, reader)
    if summary.status == JOB_ERROR:
        response.status_code = 500
    return summary


@router.get(
    "/weekly-points",
    response_model=WeeklyEvaluationSummary,
    dependencies=[Depends(verify_cron_secret)],
    summary="Évaluer les objectifs de la semaine précédente",
)
def run_weekly_points(response: Response, db: Session = Depends(get_db)):
    """
    Évalue la semaine complète précédente pour chaque élève et attribue les points automatiques.

    - Idempotent par élève : une semaine déjà évaluée est ignorée
    - Les échecs individuels sont listés dans `errors` sans interrompre le batch (200)
    - 500 uniquement si la liste des élèves n'a pas pu être chargée
    """
    summary = weekly_goal_service.evaluate_weekly_goals(db)
    if summary.status == JOB_ERROR:
        response.status_code = 500
    return summary
