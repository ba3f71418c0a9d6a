# backend/ecotrack/services/participation/kinds.py
# Description des types de ressources rejoignables (collection, modèles, champs de date, règles propres).

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from ecotrack.core.utils import as_utc, utcnow
from ecotrack.models.challenge import Challenge, ChallengeCreate, ChallengeUpdate
from ecotrack.models.event import Event, EventCreate, EventUpdate
from ecotrack.models.resource import Resource


@dataclass(frozen=True)
class ResourceKind:
    """Paramétrage d’un type de ressource pour le moteur générique.

    Attributes:
        name (str): Nom singulier ("challenge", "event").
        collection (str): Collection Mongo.
        document_model (type[Resource]): Modèle du document stocké.
        create_model (type[BaseModel]): Payload de création.
        update_model (type[BaseModel]): Payload de mise à jour.
        date_field (str): Date de début (tri, filtres de période).
        closes_field (str): Date au-delà de laquelle la ressource n’est plus rejoignable.
        unique_title (bool): Refuser deux titres identiques (insensible à la casse).
        capacity_required (bool): Capacité obligatoire.
    """

    name: str
    collection: str
    document_model: type[Resource]
    create_model: type[BaseModel]
    update_model: type[BaseModel]
    date_field: str
    closes_field: str
    unique_title: bool = False
    capacity_required: bool = False

    def parse(self, doc: dict[str, Any]) -> Resource:
        return self.document_model.model_validate(doc)

    def has_closed(self, doc: dict[str, Any]) -> bool:
        """La date de clôture est dépassée (challenge terminé, événement passé)."""
        closes_at = as_utc(doc.get(self.closes_field))
        return closes_at is not None and closes_at <= utcnow()

    def check_patch(self, current: dict[str, Any], fields: dict[str, Any]) -> str | None:
        """Cohérence des dates après application du patch, ou message d’erreur."""
        start = as_utc(fields.get(self.date_field, current.get(self.date_field)))
        end = as_utc(fields.get("end_date", current.get("end_date")))
        if start is not None and end is not None and end <= start:
            return f"end_date must be after {self.date_field}"
        if self.capacity_required and "capacity" in fields and fields["capacity"] is None:
            return "capacity is required"
        return None


CHALLENGES = ResourceKind(
    name="challenge",
    collection="challenges",
    document_model=Challenge,
    create_model=ChallengeCreate,
    update_model=ChallengeUpdate,
    date_field="start_date",
    closes_field="end_date",
    unique_title=True,
)

EVENTS = ResourceKind(
    name="event",
    collection="events",
    document_model=Event,
    create_model=EventCreate,
    update_model=EventUpdate,
    date_field="date",
    closes_field="date",
    capacity_required=True,
)

RESOURCE_KINDS: dict[str, ResourceKind] = {k.name: k for k in (CHALLENGES, EVENTS)}
