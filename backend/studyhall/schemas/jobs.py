"""
Schémas Pydantic des rapports renvoyés par les jobs batch.
Endpoints : GET /api/cron/access-sync, GET /api/cron/weekly-points
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel

JOB_SUCCESS = "success"
JOB_ERROR = "error"


class JobSummary(BaseModel):
    """
    Rapport commun. errors est toujours rempli dès qu'un élément a échoué,
    même si le run global est en statut success.
    """

    status: str = JOB_SUCCESS     # success, error
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    errors: List[str] = []


class AccessSyncSummary(JobSummary):
    """Rapport de synchronisation du contrôle d'accès."""

    skipped_unlinked: int = 0         # badge sans élève lié
    skipped_unknown_gate: int = 0     # porte inconnue ou sens indéterminé (politique skip)
    skipped_before_approval: int = 0  # passage antérieur à l'approbation du lien
    skipped_duplicate: int = 0        # déjà importé (run précédent ou même batch)
    last_access_key: Optional[str] = None


class WeeklyEvaluationSummary(JobSummary):
    """Rapport de l'évaluation hebdomadaire des objectifs."""

    week_start: Optional[date] = None
    rewarded: int = 0
    penalized: int = 0
    neutral: int = 0
