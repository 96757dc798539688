"""
Tests du lecteur de contrôle d'accès sur une base SQLite en mémoire
reproduisant les tables tgate / tenter.
"""

from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from studyhall.exceptions import ExternalSystemUnavailable
from studyhall.schemas.access import AccessRecord
from studyhall.services.access_reader import AccessControlReader

KST = ZoneInfo("Asia/Seoul")


def _insert_record(conn, e_date, e_time, g_id=1, e_id=1001, e_idno="A1001", e_name="Kim"):
    conn.execute(
        text(
            "INSERT INTO tenter (e_date, e_time, g_id, e_id, e_idno, e_name) "
            "VALUES (:e_date, :e_time, :g_id, :e_id, :e_idno, :e_name)"
        ),
        {"e_date": e_date, "e_time": e_time, "g_id": g_id, "e_id": e_id, "e_idno": e_idno, "e_name": e_name},
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
    )
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE tgate (id INTEGER PRIMARY KEY, name TEXT, ip TEXT)"))
        conn.execute(
            text(
                "CREATE TABLE tenter (e_date TEXT, e_time TEXT, g_id INTEGER, "
                "e_id INTEGER, e_idno TEXT, e_name TEXT)"
            )
        )
        conn.execute(
            text("INSERT INTO tgate (id, name, ip) VALUES (1, '정문 입실', '10.0.0.1'), (2, '정문 퇴실', NULL)")
        )
    yield engine
    engine.dispose()


def test_liste_des_portes(engine):
    with AccessControlReader(engine=engine) as reader:
        gates = reader.list_gates()

    assert [(g.id, g.name) for g in gates] == [(1, "정문 입실"), (2, "정문 퇴실")]
    assert gates[1].ip is None


def test_passages_apres_watermark_bornes_inclusives(engine):
    """Les passages de la seconde du watermark sont relus ; e_id <= 0 exclus ; tri chronologique."""
    with engine.begin() as conn:
        _insert_record(conn, "20260310", "090000")
        _insert_record(conn, "20260310", "120000", g_id=2)
        _insert_record(conn, "20260310", "110000")
        _insert_record(conn, "20260311", "080000")
        _insert_record(conn, "20260310", "130000", e_id=0)

    with AccessControlReader(engine=engine) as reader:
        records = reader.list_records_after("20260310110000")

    assert [r.access_key for r in records] == [
        "20260310110000",
        "20260310120000",
        "20260311080000",
    ]


def test_premier_run_fenetre_limitee(engine):
    """Sans watermark : uniquement les 2 dernières minutes."""
    with engine.begin() as conn:
        _insert_record(conn, "20260310", "115759")
        _insert_record(conn, "20260310", "115800")
        _insert_record(conn, "20260310", "115930")

    now = datetime(2026, 3, 10, 12, 0, tzinfo=KST)
    with AccessControlReader(engine=engine) as reader:
        records = reader.list_records_after(None, now=now)

    assert [r.e_time for r in records] == ["115800", "115930"]


def test_passage_mal_forme_ignore(engine):
    with engine.begin() as conn:
        _insert_record(conn, "20260310", "9000")
        _insert_record(conn, "20260310", "100000")

    with AccessControlReader(engine=engine) as reader:
        records = reader.list_records_after("20260310000000")

    assert [r.e_time for r in records] == ["100000"]


def test_table_absente_leve_external_system_unavailable():
    empty = create_engine("sqlite://", poolclass=StaticPool)
    with AccessControlReader(engine=empty) as reader:
        with pytest.raises(ExternalSystemUnavailable):
            reader.list_gates()


def test_connexion_impossible_leve_external_system_unavailable():
    engine = MagicMock()
    engine.connect.side_effect = OperationalError("connect", {}, Exception("timeout"))

    with AccessControlReader(engine=engine) as reader:
        with pytest.raises(ExternalSystemUnavailable, match="injoignable"):
            reader.list_gates()


def test_connexion_fermee_en_sortie_de_bloc(engine):
    reader = AccessControlReader(engine=engine)
    with reader:
        reader.list_gates()
        assert reader._connection is not None
    assert reader._connection is None


def test_moteur_externe_non_libere(engine):
    """Le lecteur ne dispose pas un moteur qu'il n'a pas créé."""
    with AccessControlReader(engine=engine) as reader:
        reader.list_gates()
    with AccessControlReader(engine=engine) as reader:
        assert len(reader.list_gates()) == 2


@pytest.mark.parametrize("e_date,e_time", [
    ("20261399", "090000"),
    ("20260230", "090000"),
    ("20260310", "250000"),
    ("20260310", "096000"),
])
def test_date_ou_heure_impossible_refusee(e_date, e_time):
    with pytest.raises(ValidationError):
        AccessRecord(e_date=e_date, e_time=e_time, g_id=1, e_id=1001)


def test_passage_a_date_impossible_ignore(engine):
    """Le passage est écarté à la lecture et n'atteint jamais la synchronisation."""
    with engine.begin() as conn:
        _insert_record(conn, "20260310", "250000")
        _insert_record(conn, "20260310", "100000")

    with AccessControlReader(engine=engine) as reader:
        records = reader.list_records_after("20260310000000")

    assert [r.access_key for r in records] == ["20260310100000"]
