"""
Configuration de la connexion à la base de données PostgreSQL.
Sessions SQLAlchemy synchrones, une par requête HTTP.

Les services committent eux-mêmes : une transaction par session ouverte/clôturée,
par décision de révision, et par élève dans une saisie manuelle.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from chamada.config import settings

# pool_pre_ping : une connexion coupée est détectée avant usage plutôt qu'en pleine écriture
engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, echo=settings.SQL_ECHO)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dépendance FastAPI — fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
