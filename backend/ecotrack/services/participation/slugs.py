# backend/ecotrack/services/participation/slugs.py
# Génération de slugs lisibles et uniques (suffixe numérique croissant en cas de collision).

from __future__ import annotations

import re
import unicodedata

from bson import ObjectId

from .store import ResourceStore

MAX_SLUG_LENGTH = 80
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9\s_-]")
_SEPARATORS = re.compile(r"[\s_-]+")


def slugify(title: str) -> str:
    """Dérive un slug URL-safe d’un titre.

    Description:
        Minuscules, accents ramenés à l’ASCII, caractères hors `[a-z0-9]` retirés,
        séparateurs fusionnés en un seul tiret, tirets de bord supprimés.
        Un titre sans caractère exploitable donne "resource".

    Args:
        title (str): Titre source.

    Returns:
        str: Slug (80 caractères max).
    """
    text = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
    text = _NON_SLUG_CHARS.sub("", text.lower().strip())
    text = _SEPARATORS.sub("-", text).strip("-")
    text = text[:MAX_SLUG_LENGTH].rstrip("-")
    return text or "resource"


def title_key(title: str) -> str:
    """Forme normalisée d’un titre, support de l’index d’unicité des titres."""
    return title.strip().lower()


class SlugGenerator:
    """Sonde le store pour trouver `base`, `base-1`, `base-2`, … libre."""

    def __init__(self, store: ResourceStore):
        self.store = store

    def candidates(self, title: str):
        base = slugify(title)
        yield base
        n = 1
        while True:
            yield f"{base}-{n}"
            n += 1

    async def unique_slug(self, title: str, exclude_id: ObjectId | None = None) -> str:
        """Premier slug candidat non utilisé par un autre document.

        Args:
            title (str): Titre source.
            exclude_id (ObjectId | None): Document à ignorer (mise à jour de son propre titre).

        Returns:
            str: Slug libre au moment de la sonde (l’index unique tranche les courses).
        """
        for slug in self.candidates(title):
            probe: dict = {"slug": slug}
            if exclude_id is not None:
                probe["_id"] = {"$ne": exclude_id}
            if not await self.store.exists(probe):
                return slug
