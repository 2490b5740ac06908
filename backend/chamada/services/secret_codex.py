"""
Génération et hachage des codes secrets d'une session de présence.

- Code d'entrée (6 caractères) : saisi par l'élève pour enregistrer sa présence
- Jeton de clôture (8 caractères) : autorise la fermeture de la session

Seul le hash SHA-256 (hex minuscule) est persisté. Le code en clair est renvoyé
une seule fois au professeur et n'est jamais stocké ni journalisé.
"""

import hashlib
import hmac
import secrets

from chamada.exceptions import ValidationError

# Sans caractères ambigus : ni 0/O, ni 1/I
ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_code(length: int = 6) -> str:
    """Tire `length` symboles de l'alphabet avec le générateur cryptographique `secrets`."""
    if length < 1:
        raise ValidationError("La longueur du code doit être d'au moins 1 caractère.")
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def hash_code(code: str) -> str:
    """Digest SHA-256 hexadécimal (minuscules) du code. Déterministe."""
    if not code:
        raise ValidationError("Le code ne peut pas être vide.")
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def verify_code(code: str, digest: str) -> bool:
    """
    Compare un code soumis au digest stocké (comparaison à temps constant).
    La saisie est normalisée : espaces retirés, majuscules.
    """
    candidate = (code or "").strip().upper()
    if not candidate or not digest:
        return False
    return hmac.compare_digest(hash_code(candidate), digest.lower())


def generate_public_token() -> str:
    """Jeton URL-safe du lien public de la page élève (non secret, mais imprévisible)."""
    return secrets.token_urlsafe(16)
