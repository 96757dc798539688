"""
Base principale de la salle d'étude : moteur, fabrique de sessions et base déclarative.
La base du contrôle d'accès a son propre moteur (services/access_reader.py).
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from studyhall.config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Session par requête HTTP, fermée en fin de requête."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
