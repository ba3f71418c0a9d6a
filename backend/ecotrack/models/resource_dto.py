# backend/ecotrack/models/resource_dto.py
# Schémas de sortie des routes challenges/events (détail, listes, participants, suppression).

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ecotrack.models.resource import Resource


def resource_out(resource: Resource, **extra: Any) -> dict[str, Any]:
    """Sérialise une ressource pour l’API (sans la liste des participants).

    Description:
        Les participations individuelles ne sortent que par la route
        `/participants`, réservée au créateur pour le détail.

    Args:
        resource (Resource): Document parsé.
        **extra: Champs calculés ajoutés (is_creator, is_joined, ...).

    Returns:
        dict: Représentation JSON-compatible.
    """
    data = resource.model_dump(mode="json", exclude={"participants"})
    data["spots_remaining"] = resource.spots_remaining
    data.update(extra)
    return data


class ParticipationOut(BaseModel):
    user_id: str
    joined_at: datetime


class JoinOut(BaseModel):
    """Résultat d’un join.

    Attributes:
        resource (dict): Ressource mise à jour.
        participation (ParticipationOut): Participation de l’appelant.
    """

    resource: dict[str, Any]
    participation: ParticipationOut


class ParticipantsOut(BaseModel):
    """Participants d’une ressource.

    Attributes:
        total (int): Participants actifs.
        capacity (int | None): Capacité (None = illimitée).
        spots_remaining (int | None): Places restantes.
        participants (list[ParticipationOut] | None): Détail (créateur uniquement).
    """

    total: int
    capacity: int | None = None
    spots_remaining: int | None = None
    participants: list[ParticipationOut] | None = None


class ResourceListOut(BaseModel):
    items: list[dict[str, Any]]
    total: int
    page: int
    page_size: int
    total_pages: int


class JoinedListOut(BaseModel):
    items: list[dict[str, Any]]
    total: int
    upcoming: int
    past: int


class CreatedListOut(BaseModel):
    items: list[dict[str, Any]]
    total: int
    counts: dict[str, int] = Field(default_factory=dict)
    total_participants: int = 0


class DeleteOut(BaseModel):
    id: str
    deleted: bool
    cancelled: bool
    status: str | None = None
