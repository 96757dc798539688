"""
Modèle SQLAlchemy pour le journal des synchronisations du contrôle d'accès.

Journal append-only : une ligne par run. Le watermark courant est le
last_access_key de la dernière ligne en statut success.
"""

import uuid
from sqlalchemy import Column, DateTime, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from studyhall.database import Base

SYNC_SUCCESS = "success"
SYNC_ERROR = "error"


class AccessSyncLog(Base):
    __tablename__ = "access_sync_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    synced_at = Column(DateTime(timezone=True), nullable=False)
    records_synced = Column(Integer, nullable=False, default=0)
    last_access_key = Column(String(14), nullable=True)  # YYYYMMDDHHmmss, NULL = pas d'avancée
    status = Column(String(20), nullable=False)          # success, error
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
