"""
Service d'évaluation des objectifs hebdomadaires.

Objectif pondéré : chaque jour de la semaine porte un type de jour (DateAssignment)
et chaque couple (type d'élève, type de jour) un réglage (WeeklyGoalSetting).
- Jour affecté     : apporte weekly_goal_hours / 7 (idem récompense, pénalité, minimum)
- Jour non affecté : apporte l'objectif par défaut du type d'élève / 7
- 7 jours affectés : les points sommés sont remultipliés par 7
- Affectation partielle : points normalisés par 7 / jours affectés
- Aucun jour affecté : objectif par défaut, récompense 1, pénalité 1

Le job tourne une fois par semaine sur la semaine complète précédente.
Idempotent par élève : un WeeklyPointOutcome existant pour (élève, semaine) → ignoré.
L'échec d'un élève est journalisé dans errors et n'interrompt pas le batch.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studyhall.config import settings
from studyhall.models.point import POINT_PENALTY, POINT_REWARD, Point, WeeklyPointOutcome
from studyhall.models.student import Student
from studyhall.models.student_type import DateAssignment, WeeklyGoalSetting
from studyhall.schemas.jobs import JOB_ERROR, WeeklyEvaluationSummary
from studyhall.services.notification_service import NOTIFICATION_POINT, notify_student
from studyhall.services.point_service import award_auto_point
from studyhall.services.study_clock import previous_week_start, week_dates, week_start_of
from studyhall.services.study_time import study_seconds_for_week

logger = logging.getLogger(__name__)

POINTS_LINK = "/student/points"


@dataclass
class WeeklyGoal:
    goal_minutes: int
    reward_points: int
    penalty_points: int
    minimum_minutes: int = 0
    assigned_days: int = 0


@dataclass
class WeeklyDecision:
    achieved: bool
    point_type: Optional[str]  # None = semaine neutre, ni récompense ni pénalité
    amount: int
    reason: str
    title: Optional[str] = None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_weekly_goal(
    days: Sequence[date],
    date_type_by_date: Mapping[date, uuid.UUID],
    settings_by_date_type: Mapping[uuid.UUID, WeeklyGoalSetting],
    default_goal_hours: float,
) -> WeeklyGoal:
    """Combinaison pondérée des réglages des 7 jours (fonction pure)."""
    total_goal_hours = 0.0
    total_reward = 0.0
    total_penalty = 0.0
    total_minimum_hours = 0.0
    assigned_days = 0

    for day in days:
        date_type_id = date_type_by_date.get(day)
        setting = settings_by_date_type.get(date_type_id) if date_type_id else None
        if setting is None:
            continue
        total_goal_hours += setting.weekly_goal_hours / 7
        total_reward += setting.reward_points / 7
        total_penalty += setting.penalty_points / 7
        total_minimum_hours += (setting.minimum_hours or 0) / 7
        assigned_days += 1

    if assigned_days == 7:
        return WeeklyGoal(
            goal_minutes=_round_half_up(total_goal_hours * 60),
            reward_points=_round_half_up(total_reward * 7),
            penalty_points=_round_half_up(total_penalty * 7),
            minimum_minutes=_round_half_up(total_minimum_hours * 60),
            assigned_days=7,
        )

    if assigned_days > 0:
        # TODO: normalisation à clarifier avec le produit, elle ne correspond à aucun barème
        # hebdomadaire cohérent quand les types de jours sont mélangés avec des jours non affectés
        unassigned_days = 7 - assigned_days
        goal_hours = total_goal_hours + default_goal_hours / 7 * unassigned_days
        return WeeklyGoal(
            goal_minutes=_round_half_up(goal_hours * 60),
            reward_points=_round_half_up(total_reward * 7 / assigned_days),
            penalty_points=_round_half_up(total_penalty * 7 / assigned_days),
            minimum_minutes=_round_half_up(total_minimum_hours * 60 * 7 / assigned_days),
            assigned_days=assigned_days,
        )

    return WeeklyGoal(
        goal_minutes=_round_half_up(default_goal_hours * 60),
        reward_points=1,
        penalty_points=1,
    )


def decide_outcome(goal: WeeklyGoal, actual_minutes: int) -> WeeklyDecision:
    """
    Objectif atteint → récompense. Sinon :
    - avec un minimum configuré, pénalité seulement sous le minimum, semaine neutre au-dessus
    - sans minimum, pénalité
    """
    study_hours = actual_minutes // 60
    goal_hours = goal.goal_minutes // 60
    minimum_hours = goal.minimum_minutes // 60

    if actual_minutes >= goal.goal_minutes:
        return WeeklyDecision(
            achieved=True,
            point_type=POINT_REWARD,
            amount=goal.reward_points,
            reason=f"Objectif hebdomadaire atteint ({study_hours}h/{goal_hours}h)",
            title="Objectif hebdomadaire atteint ! Des points de récompense ont été attribués.",
        )

    if goal.minimum_minutes > 0:
        if actual_minutes < goal.minimum_minutes:
            return WeeklyDecision(
                achieved=False,
                point_type=POINT_PENALTY,
                amount=goal.penalty_points,
                reason=f"Minimum hebdomadaire non atteint ({study_hours}h/{minimum_hours}h minimum)",
                title="Minimum hebdomadaire non atteint : des points de pénalité ont été attribués.",
            )
        return WeeklyDecision(
            achieved=False,
            point_type=None,
            amount=0,
            reason=(
                f"Semaine d'étude ({study_hours}h, objectif : {goal_hours}h, "
                f"minimum : {minimum_hours}h)"
            ),
        )

    return WeeklyDecision(
        achieved=False,
        point_type=POINT_PENALTY,
        amount=goal.penalty_points,
        reason=f"Objectif hebdomadaire non atteint ({study_hours}h/{goal_hours}h)",
        title="Objectif hebdomadaire non atteint : des points de pénalité ont été attribués.",
    )


def _load_goal_inputs(
    db: Session,
    student_type_id: uuid.UUID,
    branch_id: uuid.UUID,
    days: List[date],
) -> Tuple[Dict[date, uuid.UUID], Dict[uuid.UUID, WeeklyGoalSetting]]:
    assignments = db.execute(
        select(DateAssignment.date, DateAssignment.date_type_id).where(
            DateAssignment.branch_id == branch_id,
            DateAssignment.date.in_(days),
        )
    ).all()
    goal_settings = db.execute(
        select(WeeklyGoalSetting).where(WeeklyGoalSetting.student_type_id == student_type_id)
    ).scalars().all()
    return (
        {day: date_type_id for day, date_type_id in assignments},
        {s.date_type_id: s for s in goal_settings},
    )


def weekly_goal_for_student(db: Session, student: Student, week_start: date) -> WeeklyGoal:
    days = week_dates(week_start)
    date_type_by_date, settings_by_date_type = _load_goal_inputs(
        db, student.student_type_id, student.branch_id, days
    )
    default_goal_hours = student.student_type.weekly_goal_hours or settings.DEFAULT_WEEKLY_GOAL_HOURS
    return compute_weekly_goal(days, date_type_by_date, settings_by_date_type, default_goal_hours)


def _load_students(db: Session) -> List[Student]:
    return db.execute(
        select(Student).where(Student.student_type_id.is_not(None))
    ).scalars().all()


def _evaluated_student_ids(db: Session, week_start: date) -> Set[uuid.UUID]:
    return set(
        db.execute(
            select(WeeklyPointOutcome.student_id).where(WeeklyPointOutcome.week_start == week_start)
        ).scalars().all()
    )


def _outcome_exists(db: Session, student_id: uuid.UUID, week_start: date) -> bool:
    return db.execute(
        select(WeeklyPointOutcome.id).where(
            WeeklyPointOutcome.student_id == student_id,
            WeeklyPointOutcome.week_start == week_start,
        )
    ).scalar() is not None


def _evaluate_student(
    db: Session,
    student: Student,
    week_start: date,
    now: datetime,
) -> Tuple[WeeklyDecision, Optional[Point]]:
    """Point éventuel puis historique hebdomadaire, commités ensemble."""
    goal = weekly_goal_for_student(db, student, week_start)
    actual_minutes = study_seconds_for_week(db, student.id, week_start, now) // 60
    decision = decide_outcome(goal, actual_minutes)

    point = None
    if decision.point_type and decision.amount > 0:
        point = award_auto_point(db, student.id, decision.point_type, decision.amount, decision.reason)

    db.add(
        WeeklyPointOutcome(
            student_id=student.id,
            week_start=week_start,
            total_study_minutes=actual_minutes,
            goal_minutes=goal.goal_minutes,
            achieved=decision.achieved,
            point_id=point.id if point else None,
        )
    )
    db.commit()
    return decision, point


def evaluate_weekly_goals(db: Session, now: Optional[datetime] = None) -> WeeklyEvaluationSummary:
    """Évalue la semaine complète précédant `now` pour tous les élèves éligibles."""
    now = now or datetime.now(timezone.utc)
    week_start = previous_week_start(now)
    summary = WeeklyEvaluationSummary(week_start=week_start)

    try:
        students = _load_students(db)
        already_evaluated = _evaluated_student_ids(db, week_start)
    except SQLAlchemyError as exc:
        logger.error("Évaluation hebdomadaire impossible : %s", exc)
        summary.status = JOB_ERROR
        summary.errors.append(str(exc))
        return summary

    for student in students:
        summary.processed += 1

        if student.id in already_evaluated:
            summary.skipped += 1
            continue
        if student.branch_id is None or student.student_type is None:
            summary.skipped += 1
            logger.debug("Élève %s sans établissement ou type : ignoré", student.id)
            continue

        try:
            decision, point = _evaluate_student(db, student, week_start, now)
        except IntegrityError as exc:
            db.rollback()
            if _outcome_exists(db, student.id, week_start):
                # Un run concurrent a déjà enregistré cette semaine
                summary.skipped += 1
                logger.info("Semaine %s déjà évaluée pour l'élève %s", week_start, student.id)
            else:
                summary.errors.append(f"Élève {student.id} : {exc}")
                logger.error("Évaluation hebdomadaire en échec pour l'élève %s : %s", student.id, exc)
            continue
        except SQLAlchemyError as exc:
            db.rollback()
            summary.errors.append(f"Élève {student.id} : {exc}")
            logger.error("Évaluation hebdomadaire en échec pour l'élève %s : %s", student.id, exc)
            continue

        summary.succeeded += 1
        if decision.achieved:
            summary.rewarded += 1
        elif decision.point_type == POINT_PENALTY:
            summary.penalized += 1
        else:
            summary.neutral += 1

        if point is not None:
            notify_student(
                db,
                student.id,
                NOTIFICATION_POINT,
                title=decision.title,
                message=decision.reason,
                link=POINTS_LINK,
            )

    logger.info(
        "Évaluation hebdomadaire %s : %d élèves, %d évalués, %d ignorés, "
        "%d récompensés, %d pénalisés, %d neutres, %d erreurs",
        week_start,
        summary.processed,
        summary.succeeded,
        summary.skipped,
        summary.rewarded,
        summary.penalized,
        summary.neutral,
        len(summary.errors),
    )
    return summary


def get_weekly_progress(
    db: Session,
    student_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> dict:
    """
    Avancement de la semaine en cours : objectif pondéré, minutes étudiées, pourcentage.
    Lève ValueError si l'élève est introuvable ou n'a pas de type / d'établissement.
    """
    now = now or datetime.now(timezone.utc)
    student = db.execute(select(Student).where(Student.id == student_id)).scalar()
    if student is None:
        raise ValueError("Élève introuvable.")
    if student.branch_id is None or student.student_type is None:
        raise ValueError("L'élève n'a pas de type ou d'établissement : objectif indisponible.")

    week_start = week_start_of(now)
    goal = weekly_goal_for_student(db, student, week_start)
    actual_minutes = study_seconds_for_week(db, student.id, week_start, now) // 60
    progress = 0
    if goal.goal_minutes > 0:
        progress = min(100, _round_half_up(actual_minutes * 100 / goal.goal_minutes))

    return {
        "student_id": student.id,
        "week_start": week_start,
        "goal_minutes": goal.goal_minutes,
        "actual_minutes": actual_minutes,
        "progress_percent": progress,
        "reward_points": goal.reward_points,
        "penalty_points": goal.penalty_points,
    }
