"""
Erreurs métier de l'application.

Elles héritent de ValueError : les services lèvent, les routers traduisent
en HTTPException (404, 403, 409, 502).
"""


class NotFoundError(ValueError):
    """La classe, la session ou l'utilisateur ciblé n'existe pas."""


class PermissionDeniedError(ValueError):
    """L'utilisateur n'a pas le rôle ou la propriété requise pour l'opération."""


class SessionNotLiveError(ValueError):
    """Commande live sur une classe sans session en cours (mode strict uniquement)."""


class DeviceAccessError(RuntimeError):
    """Micro, caméra ou partage d'écran refusé ou indisponible. Jamais fatal."""


class UploadError(RuntimeError):
    """Échec d'écriture dans le stockage objet."""
