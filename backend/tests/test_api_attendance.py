"""
Tests des endpoints de présences (/api/v1/students).
"""

import uuid
from datetime import date, datetime, timezone
from unittest.mock import patch

from studyhall.models.attendance import AttendanceEvent
from studyhall.schemas.attendance import DaySummaryResponse

RECORD = "studyhall.routers.attendance.attendance_service.record_manual_event"
SUMMARY = "studyhall.routers.attendance.attendance_service.get_day_summary"
PROGRESS = "studyhall.routers.attendance.weekly_goal_service.get_weekly_progress"

STUDENT_ID = uuid.uuid4()
NOW = datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)


def make_event(event_type="check_in", timestamp=NOW):
    return AttendanceEvent(
        id=uuid.uuid4(), student_id=STUDENT_ID, type=event_type, timestamp=timestamp, source="manual"
    )


# ============================================================
# POST /api/v1/students/{id}/attendance
# ============================================================

def test_enregistrer_entree(client):
    with patch(RECORD, return_value=[make_event()]) as record:
        response = client.post(f"/api/v1/students/{STUDENT_ID}/attendance", json={"type": "check_in"})

    assert response.status_code == 201
    body = response.json()
    assert len(body) == 1
    assert body[0]["type"] == "check_in"
    assert body[0]["source"] == "manual"
    assert record.call_args.args[1:] == (STUDENT_ID, "check_in")


def test_type_invalide_422(client):
    response = client.post(f"/api/v1/students/{STUDENT_ID}/attendance", json={"type": "teleport"})
    assert response.status_code == 422


def test_eleve_introuvable_404(client):
    with patch(RECORD, side_effect=ValueError(f"Élève {STUDENT_ID} introuvable.")):
        response = client.post(f"/api/v1/students/{STUDENT_ID}/attendance", json={"type": "check_in"})
    assert response.status_code == 404


def test_transition_impossible_409(client):
    with patch(RECORD, side_effect=ValueError("Action check_in impossible : statut actuel checked_in.")):
        response = client.post(f"/api/v1/students/{STUDENT_ID}/attendance", json={"type": "check_in"})
    assert response.status_code == 409
    assert "checked_in" in response.json()["detail"]


# ============================================================
# GET /api/v1/students/{id}/study-time
# ============================================================

def test_temps_d_etude_du_jour(client):
    summary = DaySummaryResponse(
        student_id=STUDENT_ID,
        study_date=date(2026, 3, 10),
        status="checked_in",
        total_seconds=3600,
        session_started_at=NOW,
        events=[],
    )
    with patch(SUMMARY, return_value=summary) as get_summary:
        response = client.get(f"/api/v1/students/{STUDENT_ID}/study-time")

    assert response.status_code == 200
    assert response.json()["total_seconds"] == 3600
    assert get_summary.call_args.kwargs["study_date"] is None


def test_temps_d_etude_date_demandee(client):
    summary = DaySummaryResponse(
        student_id=STUDENT_ID, study_date=date(2026, 3, 9), status="checked_out", total_seconds=0, events=[]
    )
    with patch(SUMMARY, return_value=summary) as get_summary:
        response = client.get(f"/api/v1/students/{STUDENT_ID}/study-time", params={"date": "2026-03-09"})

    assert response.status_code == 200
    assert get_summary.call_args.kwargs["study_date"] == date(2026, 3, 9)


def test_identifiant_invalide_422(client):
    response = client.get("/api/v1/students/pas-un-uuid/study-time")
    assert response.status_code == 422


# ============================================================
# GET /api/v1/students/{id}/weekly-progress
# ============================================================

def test_avancement_hebdomadaire(client):
    progress = {
        "student_id": STUDENT_ID,
        "week_start": date(2026, 3, 8),
        "goal_minutes": 2400,
        "actual_minutes": 1200,
        "progress_percent": 50,
        "reward_points": 3,
        "penalty_points": 2,
    }
    with patch(PROGRESS, return_value=progress):
        response = client.get(f"/api/v1/students/{STUDENT_ID}/weekly-progress")

    assert response.status_code == 200
    assert response.json()["progress_percent"] == 50


def test_avancement_sans_type_409(client):
    with patch(PROGRESS, side_effect=ValueError("L'élève n'a pas de type ou d'établissement : objectif indisponible.")):
        response = client.get(f"/api/v1/students/{STUDENT_ID}/weekly-progress")
    assert response.status_code == 409


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
