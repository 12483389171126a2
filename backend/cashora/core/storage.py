from __future__ import annotations

import uuid
from pathlib import Path

from cashora.core.settings import settings

"""
Core Storage (buckets fichiers).

Rôle (fonctionnel) :
- Stocke les fichiers uploadés dans des “buckets” (sous-dossiers de STORAGE_DIR).
- Renvoie l’URL publique servie par l’app (montage statique /storage).
- Zone privée (PRIVATE_STORAGE_DIR, jamais montée) pour les pièces d’identité :
  on y référence les fichiers par clé "bucket/nom", lus uniquement via une route admin.

Buckets utilisés : avatars (public), verifications (privé).
"""

PUBLIC_PREFIX = "/storage"


def _file_name(owner_id: uuid.UUID, extension: str, label: str | None = None) -> str:
    middle = f"-{label}" if label else ""
    return f"{owner_id}{middle}-{uuid.uuid4().hex[:8]}.{extension}"


class LocalStorage:
    def __init__(self, root: str | Path | None = None, private_root: str | Path | None = None) -> None:
        self.root = Path(root or settings.STORAGE_DIR)
        self.private_root = Path(private_root or settings.PRIVATE_STORAGE_DIR)

    def save(self, bucket: str, owner_id: uuid.UUID, content: bytes, extension: str) -> str:
        """Écrit le fichier (nom = propriétaire + suffixe aléatoire) et renvoie son URL publique."""
        folder = self.root / bucket
        folder.mkdir(parents=True, exist_ok=True)

        name = _file_name(owner_id, extension)
        (folder / name).write_bytes(content)
        return f"{PUBLIC_PREFIX}/{bucket}/{name}"

    def delete(self, public_url: str | None) -> None:
        if not public_url or not public_url.startswith(PUBLIC_PREFIX + "/"):
            return
        path = self.root / public_url[len(PUBLIC_PREFIX) + 1:]
        path.unlink(missing_ok=True)

    def save_private(self, bucket: str, owner_id: uuid.UUID, content: bytes, extension: str, label: str) -> str:
        """Écrit le fichier en zone privée et renvoie sa clé "bucket/nom"."""
        folder = self.private_root / bucket
        folder.mkdir(parents=True, exist_ok=True)

        name = _file_name(owner_id, extension, label)
        (folder / name).write_bytes(content)
        return f"{bucket}/{name}"

    def private_path(self, key: str) -> Path | None:
        """Chemin d’une clé privée, None si absente ou hors de la zone privée."""
        base = self.private_root.resolve()
        path = (base / key).resolve()
        if base not in path.parents or not path.is_file():
            return None
        return path


storage = LocalStorage()
