# backend/ecotrack/models/resource.py
# Socle commun des ressources rejoignables (challenges, events) : participation embarquée, statut, compteur.

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, field_validator

from ecotrack.core.bson_utils import MongoBaseModel
from ecotrack.core.utils import as_utc, utcnow

ResourceStatus = Literal["active", "cancelled", "completed"]
ParticipationStatus = Literal["active", "left"]

# Champs gérés exclusivement par le serveur : jamais repris d’un patch client.
SERVER_OWNED_FIELDS = frozenset(
    {
        "_id", "id", "slug", "title_key", "creator_id", "participants", "active_participant_count",
        "created_at", "updated_at",
    }
)

_http_url = TypeAdapter(HttpUrl)


def validate_image_url(value: Any) -> str | None:
    """Valide une URL d’image http(s) ; la chaîne vide vaut « pas d’image »."""
    if value is None or value == "":
        return None
    return str(_http_url.validate_python(value))


def validate_aware(value: dt.datetime | None) -> dt.datetime | None:
    """Les dates reçues sans fuseau sont interprétées comme UTC."""
    return as_utc(value)


class Participation(BaseModel):
    """Participation d’un utilisateur à une ressource (document embarqué).

    Description:
        Une entrée par utilisateur et par ressource. Quitter ne supprime pas
        l’entrée : elle passe à `left`, et un nouveau join la réactive.

    Attributes:
        user_id (str): Identifiant opaque de l’utilisateur.
        status (Literal['active','left']): État courant.
        joined_at (datetime): Date du dernier join (rafraîchie à chaque re-join).
        left_at (datetime | None): Date du dernier départ.
    """
    user_id: str
    status: ParticipationStatus = "active"
    joined_at: dt.datetime = Field(default_factory=utcnow)
    left_at: dt.datetime | None = None

    @field_validator("joined_at", "left_at")
    @classmethod
    def aware_dates(cls, v: dt.datetime | None) -> dt.datetime | None:
        return as_utc(v)


class Resource(MongoBaseModel):
    """Document Mongo commun à toutes les ressources rejoignables.

    Description:
        `active_participant_count` est dénormalisé : il vaut toujours le nombre
        d’entrées `participants` au statut `active`. Il n’est modifié que par des
        mises à jour conditionnelles atomiques (voir `ParticipationEngine`).

    Attributes:
        slug (str): Identifiant lisible unique, dérivé du titre.
        title (str): Titre.
        creator_id (str): Créateur (immuable).
        status (Literal['active','cancelled','completed']): Statut.
        capacity (int | None): Borne haute de participants actifs (None = illimité).
        participants (list[Participation]): Historique des participations.
        active_participant_count (int): Nombre de participants actifs.
        created_at (datetime): Création (UTC).
        updated_at (datetime | None): Dernière mise à jour (UTC).
    """
    slug: str
    title: str
    creator_id: str
    status: ResourceStatus = "active"
    capacity: int | None = None
    participants: list[Participation] = Field(default_factory=list)
    active_participant_count: int = 0
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime | None = None

    @field_validator("*")
    @classmethod
    def aware_dates(cls, v: Any) -> Any:
        # Le store renvoie des dates UTC naïves
        return as_utc(v) if isinstance(v, dt.datetime) else v

    def participation_of(self, user_id: str) -> Participation | None:
        """Entrée de participation de `user_id` (active ou non), s’il y en a une."""
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    def is_joined(self, user_id: str | None) -> bool:
        if not user_id:
            return False
        p = self.participation_of(user_id)
        return p is not None and p.status == "active"

    @property
    def spots_remaining(self) -> int | None:
        if self.capacity is None:
            return None
        return max(self.capacity - self.active_participant_count, 0)

    @property
    def progress_percentage(self) -> int | None:
        if not self.capacity:
            return None
        return round(self.active_participant_count / self.capacity * 100)

