"""
Tests unitaires pour la saisie manuelle des présences.
Les événements de la journée sont fournis via un patch de load_events.
"""

import uuid
from datetime import date, datetime
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import pytest

from studyhall.models.attendance import AttendanceEvent
from studyhall.models.student import Student
from studyhall.services.attendance_service import get_day_summary, record_manual_event

SERVICE = "studyhall.services.attendance_service"
KST = ZoneInfo("Asia/Seoul")
STUDENT_ID = uuid.uuid4()


def at(hour, minute=0) -> datetime:
    return datetime(2026, 3, 10, hour, minute, tzinfo=KST)


def ev(event_type, timestamp) -> AttendanceEvent:
    return AttendanceEvent(
        id=uuid.uuid4(), student_id=STUDENT_ID, type=event_type, timestamp=timestamp, source="manual"
    )


@pytest.fixture
def db():
    db = MagicMock()
    db.execute.return_value.scalar.return_value = Student(id=STUDENT_ID, name="Kim Minji")
    return db


# ============================================================
# record_manual_event
# ============================================================

def test_entree_enregistree(db):
    with patch(f"{SERVICE}.load_events", return_value=[]):
        created = record_manual_event(db, STUDENT_ID, "check_in", now=at(9))

    assert len(created) == 1
    assert created[0].type == "check_in"
    assert created[0].source == "manual"
    assert created[0].timestamp == at(9)
    db.add_all.assert_called_once_with(created)
    db.commit.assert_called_once()


def test_double_entree_refusee(db):
    with patch(f"{SERVICE}.load_events", return_value=[ev("check_in", at(9))]):
        with pytest.raises(ValueError, match="statut actuel checked_in"):
            record_manual_event(db, STUDENT_ID, "check_in", now=at(10))
    db.commit.assert_not_called()


def test_entree_hors_heures_d_ouverture(db):
    with patch(f"{SERVICE}.load_events", return_value=[]):
        with pytest.raises(ValueError, match="heures d'ouverture"):
            record_manual_event(db, STUDENT_ID, "check_in", now=at(3))


def test_sortie_cloture_la_matiere(db):
    with patch(f"{SERVICE}.load_events", return_value=[ev("check_in", at(9))]):
        created = record_manual_event(db, STUDENT_ID, "check_out", now=at(12))

    assert [e.type for e in created] == ["check_out"]
    statements = [str(c.args[0]) for c in db.execute.call_args_list]
    assert any("UPDATE study_subjects" in s for s in statements)


def test_fin_de_pause_dans_le_delai(db):
    events = [ev("check_in", at(9)), ev("break_start", at(12))]
    with patch(f"{SERVICE}.load_events", return_value=events):
        created = record_manual_event(db, STUDENT_ID, "break_end", now=at(12, 10))

    assert [e.type for e in created] == ["break_end"]


def test_pause_trop_longue_convertie_en_sortie_et_entree(db):
    events = [ev("check_in", at(9)), ev("break_start", at(12))]
    with patch(f"{SERVICE}.load_events", return_value=events):
        created = record_manual_event(db, STUDENT_ID, "break_end", now=at(12, 40))

    assert [(e.type, e.timestamp) for e in created] == [
        ("check_out", at(12)),
        ("check_in", at(12, 40)),
    ]
    statements = [str(c.args[0]) for c in db.execute.call_args_list]
    assert any("UPDATE study_subjects" in s for s in statements)


def test_pause_sans_etre_present_refusee(db):
    with patch(f"{SERVICE}.load_events", return_value=[]):
        with pytest.raises(ValueError, match="break_start impossible"):
            record_manual_event(db, STUDENT_ID, "break_start", now=at(10))


def test_type_invalide(db):
    with pytest.raises(ValueError, match="invalide"):
        record_manual_event(db, STUDENT_ID, "teleport", now=at(10))


def test_eleve_introuvable(db):
    db.execute.return_value.scalar.return_value = None
    with pytest.raises(ValueError, match="introuvable"):
        record_manual_event(db, STUDENT_ID, "check_in", now=at(10))


# ============================================================
# get_day_summary
# ============================================================

def test_resume_session_ouverte(db):
    events = [ev("check_in", at(9))]
    with patch(f"{SERVICE}.load_events", return_value=events):
        summary = get_day_summary(db, STUDENT_ID, now=at(10))

    assert summary.study_date == date(2026, 3, 10)
    assert summary.status == "checked_in"
    assert summary.total_seconds == 3600
    assert summary.session_started_at == at(9)
    assert len(summary.events) == 1


def test_resume_journee_passee(db):
    events = [ev("check_in", at(9)), ev("check_out", at(17))]
    with patch(f"{SERVICE}.load_events", return_value=events):
        summary = get_day_summary(
            db, STUDENT_ID, study_date=date(2026, 3, 10), now=datetime(2026, 3, 12, 12, 0, tzinfo=KST)
        )

    assert summary.status == "checked_out"
    assert summary.total_seconds == 8 * 3600
    assert summary.session_started_at is None


def test_resume_nuit_rattachee_a_la_veille(db):
    """À 00:30, la journée par défaut est celle de la veille."""
    with patch(f"{SERVICE}.load_events", return_value=[]) as load_events:
        summary = get_day_summary(db, STUDENT_ID, now=datetime(2026, 3, 11, 0, 30, tzinfo=KST))

    assert summary.study_date == date(2026, 3, 10)
    assert load_events.call_args.args[2] == at(7, 30)
