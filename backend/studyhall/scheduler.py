"""
Planificateur APScheduler des jobs batch du moteur de présences.

- Synchronisation du contrôle d'accès : toutes les ACCESS_SYNC_INTERVAL_MINUTES minutes
- Évaluation hebdomadaire : chaque WEEKLY_POINTS_DAY à WEEKLY_POINTS_HOUR (heure de
  l'établissement), une fois la dernière journée d'étude de la semaine terminée (01:30)

Les mêmes jobs sont exposés en HTTP (routers/cron.py) pour un cron externe.
Aucun verrou entre runs : les deux jobs sont idempotents.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from studyhall.config import settings
from studyhall.database import SessionLocal
from studyhall.services.study_clock import facility_timezone

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _sync_access_events_scheduled() -> None:
    """
    Tâche planifiée : importe les nouveaux passages du contrôle d'accès.
    Import local pour éviter les imports circulaires.
    """
    from studyhall.services.access_reader import AccessControlReader
    from studyhall.services.access_sync_service import sync_access_events

    db = SessionLocal()
    try:
        with AccessControlReader() as reader:
            summary = sync_access_events(db, reader)
        if summary.errors:
            logger.warning("Sync contrôle d'accès en erreur : %s", "; ".join(summary.errors))
    except Exception as exc:
        logger.error("Erreur lors de la synchronisation planifiée du contrôle d'accès : %s", exc)
    finally:
        db.close()


def _evaluate_weekly_goals_scheduled() -> None:
    """Tâche planifiée : évalue la semaine précédente et attribue les points automatiques."""
    from studyhall.services.weekly_goal_service import evaluate_weekly_goals

    db = SessionLocal()
    try:
        summary = evaluate_weekly_goals(db)
        for error in summary.errors:
            logger.warning("Évaluation hebdomadaire %s : %s", summary.week_start, error)
    except Exception as exc:
        logger.error("Erreur lors de l'évaluation hebdomadaire planifiée : %s", exc)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler désactivé (SCHEDULER_ENABLED=false).")
        return

    scheduler.add_job(
        _sync_access_events_scheduled,
        trigger="interval",
        minutes=settings.ACCESS_SYNC_INTERVAL_MINUTES,
        id="access_sync",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.add_job(
        _evaluate_weekly_goals_scheduled,
        trigger=CronTrigger(
            day_of_week=settings.WEEKLY_POINTS_DAY,
            hour=settings.WEEKLY_POINTS_HOUR,
            timezone=facility_timezone(),
        ),
        id="weekly_points",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré — sync contrôle d'accès toutes les %d min, évaluation hebdomadaire le %s à %dh.",
        settings.ACCESS_SYNC_INTERVAL_MINUTES,
        settings.WEEKLY_POINTS_DAY,
        settings.WEEKLY_POINTS_HOUR,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
