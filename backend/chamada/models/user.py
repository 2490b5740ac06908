"""
Modèle SQLAlchemy pour les utilisateurs (profils).
Table gérée par l'écran d'administration ; seules les colonnes lues ici sont mappées.
"""

import uuid
from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from chamada.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    role = Column(String(50), nullable=False)  # professor, coordenador, diretor, gerente, admin, super_admin
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
