"""
Lecteur de la base du système de contrôle d'accès (lecture seule).

La connexion est possédée explicitement par le lecteur : ouverte à la première requête,
fermée à la sortie du bloc (pas de connexion globale au niveau module) :

    with AccessControlReader() as reader:
        gates = reader.list_gates()
        records = reader.list_records_after(watermark)

Toute erreur d'accès (connexion, requête) est levée en ExternalSystemUnavailable.
Aucun retry interne : le prochain déclenchement du batch fait office de retry.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from studyhall.config import settings
from studyhall.exceptions import ExternalSystemUnavailable
from studyhall.schemas.access import AccessRecord, Gate
from studyhall.services.study_clock import format_access_key

logger = logging.getLogger(__name__)

GATES_QUERY = text("SELECT id, name, ip FROM tgate")

# Borne inclusive : les passages de la même seconde que le watermark sont relus,
# le dédoublonnage est fait par le service de synchronisation.
RECORDS_AFTER_QUERY = text(
    """
    SELECT e_date, e_time, g_id, e_id, e_idno, e_name
    FROM tenter
    WHERE (e_date > :after_date OR (e_date = :after_date AND e_time >= :after_time))
      AND e_id > 0
    ORDER BY e_date, e_time
    """
)


def _build_engine(url: str) -> Engine:
    connect_args = {}
    if make_url(url).drivername == "mssql+pymssql":
        connect_args = {
            "login_timeout": settings.ACCESS_DB_TIMEOUT_SECONDS,
            "timeout": settings.ACCESS_DB_TIMEOUT_SECONDS,
        }
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


class AccessControlReader:
    """Adaptateur en lecture seule sur les tables tgate / tenter."""

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None):
        self._url = url or settings.ACCESS_DB_URL
        self._engine = engine
        self._owns_engine = engine is None
        self._connection: Optional[Connection] = None

    def __enter__(self) -> "AccessControlReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        """Ouvre la connexion (création paresseuse du moteur)."""
        if self._connection is not None:
            return
        try:
            if self._engine is None:
                self._engine = _build_engine(self._url)
            self._connection = self._engine.connect()
        except SQLAlchemyError as exc:
            raise ExternalSystemUnavailable(f"Contrôle d'accès injoignable : {exc}") from exc

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._owns_engine and self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def _execute(self, statement, params=None):
        self.open()
        try:
            return self._connection.execute(statement, params or {}).mappings().all()
        except SQLAlchemyError as exc:
            raise ExternalSystemUnavailable(f"Requête contrôle d'accès en échec : {exc}") from exc

    def list_gates(self) -> List[Gate]:
        rows = self._execute(GATES_QUERY)
        return [Gate.model_validate(dict(row)) for row in rows]

    def list_records_after(
        self,
        watermark: Optional[str],
        now: Optional[datetime] = None,
    ) -> List[AccessRecord]:
        """
        Passages dont la clé YYYYMMDDHHmmss est >= watermark, triés par (date, heure).

        Sans watermark (premier déploiement), la requête est bornée aux
        ACCESS_FIRST_RUN_WINDOW_MINUTES dernières minutes pour éviter un backfill massif.
        """
        if not watermark:
            now = now or datetime.now(timezone.utc)
            window = timedelta(minutes=settings.ACCESS_FIRST_RUN_WINDOW_MINUTES)
            watermark = format_access_key(now - window)
            logger.info("Aucun watermark : lecture limitée aux passages depuis %s", watermark)

        rows = self._execute(
            RECORDS_AFTER_QUERY,
            {"after_date": watermark[:8], "after_time": watermark[8:]},
        )

        records = []
        for row in rows:
            try:
                records.append(AccessRecord.model_validate(dict(row)))
            except ValidationError as exc:
                logger.warning("Passage mal formé ignoré : %s (%s)", dict(row), exc.errors()[0]["msg"])
        return records
