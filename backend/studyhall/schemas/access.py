"""
Schémas Pydantic pour les lignes lues dans la base du contrôle d'accès.
Tables externes : tgate (portes) et tenter (passages). Lecture seule.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class Gate(BaseModel):
    """Porte du contrôle d'accès. Le nom sert à déduire le sens (entrée / sortie)."""

    id: int
    name: str
    ip: Optional[str] = None


class AccessRecord(BaseModel):
    """Un passage de badge enregistré par le contrôle d'accès."""

    e_date: str                   # YYYYMMDD, heure locale de l'établissement
    e_time: str                   # HHmmss
    g_id: int                     # Porte
    e_id: int                     # Identifiant utilisateur externe, clé du lien élève
    e_idno: Optional[str] = None  # Numéro de badge
    e_name: Optional[str] = None

    @field_validator("e_date")
    @classmethod
    def valid_date(cls, v) -> str:
        v = str(v).strip()
        if len(v) != 8 or not v.isdigit():
            raise ValueError(f"e_date invalide (YYYYMMDD attendu) : {v!r}")
        try:
            datetime.strptime(v, "%Y%m%d")
        except ValueError:
            raise ValueError(f"e_date impossible : {v!r}")
        return v

    @field_validator("e_time")
    @classmethod
    def valid_time(cls, v) -> str:
        v = str(v).strip()
        if len(v) != 6 or not v.isdigit():
            raise ValueError(f"e_time invalide (HHmmss attendu) : {v!r}")
        try:
            datetime.strptime(v, "%H%M%S")
        except ValueError:
            raise ValueError(f"e_time impossible : {v!r}")
        return v

    @property
    def access_key(self) -> str:
        """Clé triable YYYYMMDDHHmmss, comparée en chaîne pour le watermark."""
        return self.e_date + self.e_time
