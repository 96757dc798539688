"""
Service de synchronisation contrôle d'accès → événements de présence canoniques.

Un run = un batch, déclenché de l'extérieur (cron HTTP ou scheduler) :
1. Lit le dernier watermark en succès (clé YYYYMMDDHHmmss)
2. Lit les portes et les passages >= watermark
3. Aucun passage → ligne de journal success avec 0 enregistrement, fin
4. Badge → élève via StudentAccessLink (badge inconnu : ignoré, pas une erreur)
5. Nom de porte → check_in / check_out par mots-clés
6. Passage antérieur à approved_at du lien : ignoré
7. Dédoublonnage (student_id, timestamp, external_access) en base ET dans le batch
8. Insertion groupée des nouveaux événements
9. Chaque sortie clôture la session de matière en cours de l'élève
10. Ligne de journal success (clé max lue, nombre inséré) ; sur erreur → ligne error,
    watermark non avancé : le run suivant repart du même point (retry du batch complet)

Idempotence : un passage externe a un horodatage stable, la clé (élève, instant) suffit.
Deux runs concurrents ne peuvent pas insérer deux fois le même passage (dédoublonnage
+ index unique partiel) ; ils peuvent en revanche écrire deux lignes de journal.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studyhall.config import settings
from studyhall.exceptions import (
    ApprovalBoundaryViolation,
    IdentityUnresolved,
    PersistenceError,
)
from studyhall.models.access_sync_log import SYNC_ERROR, SYNC_SUCCESS, AccessSyncLog
from studyhall.models.attendance import CHECK_IN, CHECK_OUT, SOURCE_EXTERNAL_ACCESS, AttendanceEvent
from studyhall.models.student import StudentAccessLink
from studyhall.models.subject import StudySubject
from studyhall.schemas.access import AccessRecord, Gate
from studyhall.schemas.jobs import JOB_ERROR, AccessSyncSummary
from studyhall.services.access_reader import AccessControlReader
from studyhall.services.study_clock import parse_access_key

logger = logging.getLogger(__name__)

EventKey = Tuple[uuid.UUID, datetime]


def _as_utc(value: datetime) -> datetime:
    # Les colonnes timestamptz reviennent aware ; une valeur naïve est supposée UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def classify_gate(gate_name: str) -> Optional[str]:
    """
    Sens d'une porte d'après son nom (sous-chaîne, insensible à la casse).
    Les mots-clés d'entrée sont testés en premier. Une porte ambiguë suit
    ACCESS_UNMATCHED_GATE_POLICY : check_in par défaut, None si « skip ».
    """
    direction = _match_direction(gate_name)
    if direction is not None:
        return direction
    if settings.ACCESS_UNMATCHED_GATE_POLICY == "skip":
        return None
    return CHECK_IN


def _match_direction(gate_name: str) -> Optional[str]:
    name = gate_name.lower()
    if any(keyword.lower() in name for keyword in settings.ACCESS_CHECK_IN_KEYWORDS):
        return CHECK_IN
    if any(keyword.lower() in name for keyword in settings.ACCESS_CHECK_OUT_KEYWORDS):
        return CHECK_OUT
    return None


def _classify_gates(gates: Iterable[Gate]) -> Dict[int, Optional[str]]:
    types = {}
    for gate in gates:
        types[gate.id] = classify_gate(gate.name)
        if _match_direction(gate.name) is None:
            logger.warning(
                "Porte %s (%s) sans sens identifiable : politique '%s' appliquée",
                gate.id, gate.name, settings.ACCESS_UNMATCHED_GATE_POLICY,
            )
    return types


def get_latest_watermark(db: Session) -> Optional[str]:
    """Clé du dernier run en succès, None au premier déploiement."""
    return db.execute(
        select(AccessSyncLog.last_access_key)
        .where(AccessSyncLog.status == SYNC_SUCCESS)
        .order_by(AccessSyncLog.synced_at.desc())
        .limit(1)
    ).scalar()


def _load_links(db: Session, access_user_ids: Set[str]) -> Dict[str, StudentAccessLink]:
    links = db.execute(
        select(StudentAccessLink).where(StudentAccessLink.access_user_id.in_(list(access_user_ids)))
    ).scalars().all()
    return {link.access_user_id: link for link in links}


def _resolve_link(links: Dict[str, StudentAccessLink], record: AccessRecord) -> StudentAccessLink:
    link = links.get(str(record.e_id))
    if link is None:
        raise IdentityUnresolved(str(record.e_id))
    return link


def _check_approval(link: StudentAccessLink, timestamp: datetime) -> None:
    if link.approved_at is not None and timestamp < _as_utc(link.approved_at):
        raise ApprovalBoundaryViolation(
            f"Passage du {timestamp.isoformat()} antérieur à l'approbation du lien de l'élève {link.student_id}"
        )


def _existing_event_keys(db: Session, candidates: List[AttendanceEvent]) -> Set[EventKey]:
    """Clés (élève, instant UTC) déjà importées depuis le contrôle d'accès."""
    rows = db.execute(
        select(AttendanceEvent.student_id, AttendanceEvent.timestamp).where(
            AttendanceEvent.student_id.in_(list({c.student_id for c in candidates})),
            AttendanceEvent.timestamp.in_(list({c.timestamp for c in candidates})),
            AttendanceEvent.source == SOURCE_EXTERNAL_ACCESS,
        )
    ).all()
    return {(student_id, _as_utc(timestamp)) for student_id, timestamp in rows}


def _build_new_events(
    db: Session,
    records: List[AccessRecord],
    gates: List[Gate],
    summary: AccessSyncSummary,
) -> List[AttendanceEvent]:
    gate_types = _classify_gates(gates)
    links = _load_links(db, {str(r.e_id) for r in records})

    candidates: List[AttendanceEvent] = []
    for record in records:
        try:
            link = _resolve_link(links, record)
        except IdentityUnresolved as exc:
            summary.skipped_unlinked += 1
            logger.debug("Passage ignoré : %s", exc)
            continue

        event_type = gate_types.get(record.g_id)
        if event_type is None:
            summary.skipped_unknown_gate += 1
            logger.debug("Passage ignoré : porte %s inconnue ou sans sens", record.g_id)
            continue

        timestamp = _as_utc(parse_access_key(record.e_date, record.e_time))
        try:
            _check_approval(link, timestamp)
        except ApprovalBoundaryViolation as exc:
            summary.skipped_before_approval += 1
            logger.debug("Passage ignoré : %s", exc)
            continue

        candidates.append(
            AttendanceEvent(
                student_id=link.student_id,
                type=event_type,
                timestamp=timestamp,
                source=SOURCE_EXTERNAL_ACCESS,
            )
        )

    if not candidates:
        return []

    existing = _existing_event_keys(db, candidates)

    # Doublons intra-batch : deux passages du même badge dans la même seconde
    seen_in_batch: Set[EventKey] = set()
    new_events = []
    for event in candidates:
        key = (event.student_id, event.timestamp)
        if key in existing or key in seen_in_batch:
            summary.skipped_duplicate += 1
            continue
        seen_in_batch.add(key)
        new_events.append(event)
    return new_events


def _latest_check_out_by_student(events: List[AttendanceEvent]) -> Dict[uuid.UUID, datetime]:
    latest: Dict[uuid.UUID, datetime] = {}
    for event in events:
        if event.type != CHECK_OUT:
            continue
        current = latest.get(event.student_id)
        if current is None or event.timestamp > current:
            latest[event.student_id] = event.timestamp
    return latest


def _persist_batch(
    db: Session,
    new_events: List[AttendanceEvent],
    synced_at: datetime,
    last_access_key: Optional[str],
) -> None:
    """Insertions, clôture des sessions de matière et journal dans une seule transaction."""
    try:
        if new_events:
            db.add_all(new_events)
            for student_id, ended_at in _latest_check_out_by_student(new_events).items():
                db.execute(
                    update(StudySubject)
                    .where(StudySubject.student_id == student_id, StudySubject.is_current.is_(True))
                    .values(is_current=False, ended_at=ended_at)
                )
        db.add(
            AccessSyncLog(
                synced_at=synced_at,
                records_synced=len(new_events),
                last_access_key=last_access_key,
                status=SYNC_SUCCESS,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Échec d'insertion des passages : {exc}") from exc


def _record_failure(db: Session, synced_at: datetime, message: str) -> None:
    db.rollback()
    db.add(
        AccessSyncLog(
            synced_at=synced_at,
            records_synced=0,
            last_access_key=None,
            status=SYNC_ERROR,
            error_message=message,
        )
    )
    db.commit()


def sync_access_events(
    db: Session,
    reader: AccessControlReader,
    now: Optional[datetime] = None,
) -> AccessSyncSummary:
    """
    Importe les nouveaux passages du contrôle d'accès en événements de présence.

    Retourne un rapport ; sur toute erreur (ExternalSystemUnavailable, PersistenceError
    ou passage inexploitable), le statut est « error », une ligne error est journalisée
    et rien n'est inséré.
    """
    now = now or datetime.now(timezone.utc)
    summary = AccessSyncSummary()

    try:
        watermark = get_latest_watermark(db)
        gates = reader.list_gates()
        records = reader.list_records_after(watermark, now=now)
        summary.processed = len(records)

        if not records:
            _persist_batch(db, [], now, watermark)
            summary.last_access_key = watermark
            logger.info("Sync contrôle d'accès : aucun nouveau passage (watermark %s)", watermark)
            return summary

        new_events = _build_new_events(db, records, gates, summary)
        # Comparaison en chaîne : la clé YYYYMMDDHHmmss est triable lexicographiquement
        last_access_key = max(r.access_key for r in records)
        _persist_batch(db, new_events, now, last_access_key)
    except Exception as exc:
        # Toute erreur du batch, y compris inattendue, laisse une ligne error
        message = str(exc) or exc.__class__.__name__
        logger.error("Erreur de synchronisation du contrôle d'accès : %s", message, exc_info=True)
        _record_failure(db, now, message)
        summary.status = JOB_ERROR
        summary.succeeded = 0
        summary.errors.append(message)
        return summary

    summary.succeeded = len(new_events)
    summary.skipped = summary.processed - summary.succeeded
    summary.last_access_key = last_access_key

    logger.info(
        "Sync contrôle d'accès : %d lus, %d insérés, %d sans élève, %d porte ignorée, "
        "%d avant approbation, %d doublons — watermark %s",
        summary.processed,
        summary.succeeded,
        summary.skipped_unlinked,
        summary.skipped_unknown_gate,
        summary.skipped_before_approval,
        summary.skipped_duplicate,
        last_access_key,
    )
    return summary
