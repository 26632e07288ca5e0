"""
Stockage objet des fichiers envoyés (vidéos de cours, images d'examen).

La clé est dérivée du contenu (SHA-256) : renvoyer le même fichier
retourne la même URL, sans réécriture. Toute erreur d'écriture
remonte en UploadError.
"""

import hashlib
import logging
import os
import re

from app.errors import UploadError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StorageService:

    def __init__(self, root: str, base_url: str, max_bytes: int):
        self.root = root
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes

    @staticmethod
    def object_key(prefix: str, filename: str, payload: bytes) -> str:
        """classes/<id>/videos/<sha256[:16]>_<nom nettoyé>"""
        digest = hashlib.sha256(payload).hexdigest()[:16]
        safe_name = _UNSAFE_CHARS.sub("_", os.path.basename(filename or "")).strip("._") or "file"
        return f"{prefix.strip('/')}/{digest}_{safe_name}"

    def upload(self, prefix: str, filename: str, payload: bytes) -> str:
        """Écrit le fichier (si absent) et retourne son URL publique stable."""
        if not payload:
            raise UploadError("Le fichier envoyé est vide.")
        if len(payload) > self.max_bytes:
            raise UploadError(f"Fichier trop volumineux ({len(payload)} octets, max {self.max_bytes}).")

        key = self.object_key(prefix, filename, payload)
        path = os.path.join(self.root, *key.split("/"))
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            if not os.path.exists(path):
                tmp_path = f"{path}.part"
                with open(tmp_path, "wb") as f:
                    f.write(payload)
                os.replace(tmp_path, path)
        except OSError as exc:
            raise UploadError(f"Échec de l'écriture du fichier {filename} : {exc}") from exc

        logger.info("Fichier stocké : %s (%d octets)", key, len(payload))
        return f"{self.base_url}/{key}"
