"""
Taxonomie des erreurs métier du module de présence.

Chaque classe correspond à un code HTTP (voir les handlers de main.py) :
- ValidationError        → 400 (OpenSessionExistsError → 409)
- PermissionDeniedError  → 403
- NotFoundError          → 404
- PartialBatchFailure    → 207 (rapport agrégé dans le corps)
- TransientIOError       → 503
"""


class ChamadaError(Exception):
    """Erreur métier de base, message lisible par l'utilisateur."""


class ValidationError(ChamadaError, ValueError):
    """Contexte manquant ou donnée invalide (classe/discipline, code vide, etc.)."""


class OpenSessionExistsError(ValidationError):
    """Le professeur possède déjà une session ABERTA."""


class PermissionDeniedError(ChamadaError):
    """L'acteur n'a pas le rôle requis pour cette action."""


class NotFoundError(ChamadaError):
    """Session ou enregistrement introuvable (ou disparu entre lecture et écriture)."""


class TransientIOError(ChamadaError):
    """Échec d'un appel à la base sans cause métier identifiable."""


class PartialBatchFailure(ChamadaError):
    """
    Lot d'écritures partiellement appliqué.
    Les écritures réussies ne sont pas annulées ; `result` contient le rapport complet.
    """

    def __init__(self, result):
        self.result = result
        super().__init__(
            f"{result.failed} écriture(s) en échec sur {result.succeeded + result.failed} : "
            f"{result.first_error}"
        )
