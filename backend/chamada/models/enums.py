"""
Énumérations fermées partagées par les modèles et les schémas.
Les colonnes stockent la valeur texte (vocabulaire de la base : portugais).
"""

import enum


class SessionStatus(str, enum.Enum):
    ABERTA = "ABERTA"
    ENCERRADA = "ENCERRADA"
    AUDITORIA_FINALIZADA = "AUDITORIA_FINALIZADA"  # Posé par l'audit externe uniquement


class AttendanceStatus(str, enum.Enum):
    PRESENTE = "PRESENTE"
    FALTA = "FALTA"
    JUSTIFICADO = "JUSTIFICADO"


class CaptureSource(str, enum.Enum):
    AUTO_ALUNO = "AUTO_ALUNO"      # Enregistrement par l'élève (code + preuves)
    MANUAL_PROF = "MANUAL_PROF"
    MANUAL_COORD = "MANUAL_COORD"


class ActorRole(str, enum.Enum):
    PROFESSOR = "professor"
    COORDENADOR = "coordenador"
    DIRETOR = "diretor"
    GERENTE = "gerente"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    ALUNO = "aluno"


class GeoEvidence(str, enum.Enum):
    DENTRO = "DENTRO"    # geo_ok = True
    FORA = "FORA"        # geo_ok = False
    AUSENTE = "AUSENTE"  # pas de géolocalisation (geo_ok = NULL)


# Rôles de coordination : peuvent agir sur les sessions de n'importe quel professeur
STAFF_ROLES = frozenset({
    ActorRole.COORDENADOR,
    ActorRole.DIRETOR,
    ActorRole.GERENTE,
    ActorRole.ADMIN,
    ActorRole.SUPER_ADMIN,
})
