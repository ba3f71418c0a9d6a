# backend/ecotrack/services/participation/lifecycle.py
# Cycle de vie des ressources : création (slug unique), mise à jour garde-capacité, suppression ou annulation, lectures.

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Literal

from bson import ObjectId
from pydantic import BaseModel, ValidationError
from pymongo.errors import DuplicateKeyError

from ecotrack.core.bson_utils import parse_object_id
from ecotrack.core.settings import Settings, get_settings
from ecotrack.core.utils import utcnow
from ecotrack.models.resource import SERVER_OWNED_FIELDS, Resource

from .engine import COUNT_FIELD
from .kinds import ResourceKind
from .outcomes import FailureKind, Outcome
from .slugs import SlugGenerator, title_key
from .store import ResourceStore

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = frozenset({"created_at", "title", "start_date", "end_date", "date", "active_participant_count"})
# Les listes ne transportent jamais le détail des participants
LIST_PROJECTION = {"participants": 0}


@dataclass(frozen=True)
class ResourceView:
    """Ressource enrichie du point de vue de l’appelant."""
    resource: Resource
    is_creator: bool = False
    is_joined: bool = False

    @property
    def spots_remaining(self) -> int | None:
        return self.resource.spots_remaining

    @property
    def progress_percentage(self) -> int | None:
        return self.resource.progress_percentage


@dataclass(frozen=True)
class DeleteResult:
    """Issue d’une suppression.

    Attributes:
        resource_id (str): Identifiant de la ressource.
        deleted (bool): Document supprimé.
        status (str | None): Statut du document conservé (None si supprimé).
    """
    resource_id: str
    deleted: bool
    status: str | None = None

    @property
    def cancelled(self) -> bool:
        return self.status == "cancelled"


@dataclass(frozen=True)
class ListFilters:
    """Filtres de liste.

    Attributes:
        status (str | None): Statut exact.
        category (str | None): Catégorie exacte.
        search (str | None): Texte libre (titre ou description, insensible à la casse).
        date_from (datetime | None): Borne basse (incluse) sur la date du type.
        date_to (datetime | None): Borne haute (incluse) sur la date du type.
        sort_by (str | None): Champ de tri (défaut : date du type).
        order (Literal['asc','desc']): Sens du tri.
    """
    status: str | None = None
    category: str | None = None
    search: str | None = None
    date_from: dt.datetime | None = None
    date_to: dt.datetime | None = None
    sort_by: str | None = None
    order: Literal["asc", "desc"] = "asc"


@dataclass(frozen=True)
class ResourcePage:
    items: list[Resource]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.page_size else 0


@dataclass(frozen=True)
class CreatedResources:
    items: list[Resource]
    total: int
    counts: dict[str, int] = field(default_factory=dict)
    total_participants: int = 0


def _validation_details(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def _coerce(model: type[BaseModel], data: BaseModel | dict[str, Any]) -> BaseModel | Outcome:
    """Valide un payload brut ; un modèle déjà validé est rendu tel quel."""
    if isinstance(data, BaseModel):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        return Outcome.fail(FailureKind.VALIDATION_ERROR, details=_validation_details(e))


class ResourceLifecycle:
    """Création, modification et suppression des ressources d’un type donné.

    Description:
        Toute écriture concurrente avec le moteur de participation passe par une
        mise à jour conditionnelle : la garde de capacité et l’annulation sont
        exprimées dans le filtre, jamais seulement vérifiées en mémoire.
    """

    def __init__(self, store: ResourceStore, settings: Settings | None = None):
        self.store = store
        self.kind: ResourceKind = store.kind
        self.settings = settings or get_settings()
        self.slugs = SlugGenerator(store)

    # --------------------------------------------------------------- helpers

    async def unique_title(self, title: str, exclude_id: ObjectId | None = None) -> bool:
        """Aucune autre ressource ne porte ce titre (comparaison exacte, insensible à la casse).

        Args:
            title (str): Titre candidat.
            exclude_id (ObjectId | None): Ressource ignorée (son propre titre lors d’une mise à jour).

        Returns:
            bool: True si le titre est libre.
        """
        probe: dict[str, Any] = {"title": {"$regex": f"^{re.escape(title.strip())}$", "$options": "i"}}
        if exclude_id is not None:
            probe["_id"] = {"$ne": exclude_id}
        return not await self.store.exists(probe)

    def _duplicate_title(self) -> Outcome:
        return Outcome.fail(FailureKind.CONFLICT, f"A {self.kind.name} with this title already exists")

    # ---------------------------------------------------------------- create

    async def create(self, data: BaseModel | dict[str, Any], creator_id: str) -> Outcome[Resource]:
        """Créer une ressource appartenant à `creator_id`.

        Description:
            - Payload validé par le modèle de création du type.
            - Titre unique (challenges) : sonde préalable, puis index unique sur
              `title_key` pour les créations concurrentes.
            - Slug dérivé du titre ; une collision à l’insertion (index unique)
              relance la sonde, au plus `slug_max_attempts` fois.
            - Statut `active`, aucun participant, compteur à 0.

        Args:
            data (BaseModel | dict): Payload de création.
            creator_id (str): Identifiant du créateur.

        Returns:
            Outcome[Resource]: Ressource créée, ou VALIDATION_ERROR / CONFLICT.
        """
        payload = _coerce(self.kind.create_model, data)
        if isinstance(payload, Outcome):
            return payload
        fields = payload.to_document_fields()
        title = fields["title"]

        if self.kind.unique_title and not await self.unique_title(title):
            return self._duplicate_title()

        for _ in range(self.settings.slug_max_attempts):
            now = utcnow()
            doc = {
                **fields,
                "slug": await self.slugs.unique_slug(title),
                "creator_id": creator_id,
                "status": "active",
                "participants": [],
                COUNT_FIELD: 0,
                "created_at": now,
                "updated_at": now,
            }
            if self.kind.unique_title:
                doc["title_key"] = title_key(title)
            try:
                doc["_id"] = await self.store.insert(doc)
            except DuplicateKeyError:
                # Titre pris par une création concurrente, sinon slug
                if self.kind.unique_title and not await self.unique_title(title):
                    return self._duplicate_title()
                logger.info("%s slug %r taken concurrently, probing again", self.kind.name, doc["slug"])
                continue
            logger.info("%s created: %s (%s) by %s", self.kind.name, doc["_id"], doc["slug"], creator_id)
            return Outcome.success(self.kind.parse(doc))

        logger.warning("%s: no free slug for %r after %s attempts", self.kind.name, title, self.settings.slug_max_attempts)
        return Outcome.fail(FailureKind.CONFLICT, "Could not allocate a unique slug")

    # ---------------------------------------------------------------- update

    async def update(self, resource_id: str | ObjectId, patch: BaseModel | dict[str, Any], caller_id: str) -> Outcome[Resource]:
        """Mettre à jour une ressource (créateur uniquement).

        Description:
            Les champs gérés par le serveur sont ignorés. Un changement de titre
            régénère le slug. Une capacité inférieure au nombre de participants
            actifs est refusée ; la garde est aussi posée dans le filtre de la
            mise à jour, ce qui exclut qu’un join concurrent passe dessous.
            Le statut ne peut quitter `active` que vers `cancelled` ou `completed`.

        Args:
            resource_id: Identifiant de la ressource.
            patch: Payload de mise à jour partielle.
            caller_id: Identifiant de l’appelant.

        Returns:
            Outcome[Resource]: Ressource mise à jour, ou NOT_FOUND / FORBIDDEN /
            VALIDATION_ERROR / INVALID_CAPACITY / CONFLICT.
        """
        oid = parse_object_id(resource_id)
        if oid is None:
            return Outcome.fail(FailureKind.NOT_FOUND)

        payload = _coerce(self.kind.update_model, patch)
        if isinstance(payload, Outcome):
            return payload
        fields = {k: v for k, v in payload.to_update_fields().items() if k not in SERVER_OWNED_FIELDS}

        for _ in range(self.settings.participation_max_attempts):
            doc = await self.store.load(oid)
            if doc is None:
                return Outcome.fail(FailureKind.NOT_FOUND)
            if doc.get("creator_id") != caller_id:
                return Outcome.fail(FailureKind.FORBIDDEN)

            current_status = doc.get("status")
            new_status = fields.get("status")
            if new_status is not None and new_status != current_status:
                if current_status != "active" or new_status == "active":
                    return Outcome.fail(
                        FailureKind.VALIDATION_ERROR,
                        f"Status cannot change from {current_status} to {new_status}",
                    )

            error = self.kind.check_patch(doc, fields)
            if error:
                return Outcome.fail(FailureKind.VALIDATION_ERROR, error)

            filter_: dict[str, Any] = {"_id": oid, "creator_id": caller_id, "status": current_status}
            changes = dict(fields)

            new_capacity = fields.get("capacity")
            if new_capacity is not None:
                if doc.get(COUNT_FIELD, 0) > new_capacity:
                    return Outcome.fail(FailureKind.INVALID_CAPACITY)
                filter_[COUNT_FIELD] = {"$lte": new_capacity}

            title = fields.get("title")
            if title is not None and title != doc.get("title"):
                if self.kind.unique_title and not await self.unique_title(title, exclude_id=oid):
                    return self._duplicate_title()
                changes["slug"] = await self.slugs.unique_slug(title, exclude_id=oid)
                if self.kind.unique_title:
                    changes["title_key"] = title_key(title)

            changes["updated_at"] = utcnow()
            try:
                updated = await self.store.conditional_update(filter_, {"$set": changes})
            except DuplicateKeyError:
                continue
            if updated is not None:
                logger.info("%s %s updated by %s: %s", self.kind.name, oid, caller_id, sorted(fields))
                return Outcome.success(self.kind.parse(updated))
            logger.debug("%s %s: update predicate did not match, re-checking", self.kind.name, oid)

        return Outcome.fail(FailureKind.CONFLICT)

    # ---------------------------------------------------------------- delete

    async def delete_or_cancel(self, resource_id: str | ObjectId, caller_id: str) -> Outcome[DeleteResult]:
        """Supprimer une ressource sans participant, sinon l’annuler.

        Description:
            Suppression conditionnelle sur `active_participant_count == 0`, puis
            à défaut passage conditionnel à `cancelled` sur un compteur > 0. Une
            ressource déjà annulée ou terminée qui garde des participants est
            conservée avec son statut (`deleted=False`, `status` renseigné).

        Returns:
            Outcome[DeleteResult]: Résultat, ou NOT_FOUND / FORBIDDEN / CONFLICT.
        """
        oid = parse_object_id(resource_id)
        if oid is None:
            return Outcome.fail(FailureKind.NOT_FOUND)

        for _ in range(self.settings.participation_max_attempts):
            doc = await self.store.load(oid)
            if doc is None:
                return Outcome.fail(FailureKind.NOT_FOUND)
            if doc.get("creator_id") != caller_id:
                return Outcome.fail(FailureKind.FORBIDDEN)

            if await self.store.conditional_delete({"_id": oid, "creator_id": caller_id, COUNT_FIELD: 0}):
                logger.info("%s %s deleted by %s", self.kind.name, oid, caller_id)
                return Outcome.success(DeleteResult(resource_id=str(oid), deleted=True))

            updated = await self.store.conditional_update(
                {"_id": oid, "creator_id": caller_id, "status": "active", COUNT_FIELD: {"$gt": 0}},
                {"$set": {"status": "cancelled", "updated_at": utcnow()}},
            )
            if updated is not None:
                logger.info(
                    "%s %s cancelled by %s (%s participants)", self.kind.name, oid, caller_id, updated.get(COUNT_FIELD)
                )
                return Outcome.success(DeleteResult(resource_id=str(oid), deleted=False, status="cancelled"))

            doc = await self.store.load(oid)
            if doc is None:
                return Outcome.fail(FailureKind.NOT_FOUND)
            if doc.get("status") != "active" and doc.get(COUNT_FIELD, 0) > 0:
                return Outcome.success(DeleteResult(resource_id=str(oid), deleted=False, status=doc["status"]))

        return Outcome.fail(FailureKind.CONFLICT)

    # ----------------------------------------------------------------- reads

    async def get(self, id_or_slug: str, caller_id: str | None = None) -> Outcome[ResourceView]:
        """Ressource par identifiant (ObjectId), à défaut par slug."""
        doc = None
        oid = parse_object_id(id_or_slug)
        if oid is not None:
            doc = await self.store.load(oid)
        if doc is None and isinstance(id_or_slug, str):
            doc = await self.store.load_by_slug(id_or_slug)
        if doc is None:
            return Outcome.fail(FailureKind.NOT_FOUND)

        resource = self.kind.parse(doc)
        return Outcome.success(
            ResourceView(
                resource=resource,
                is_creator=caller_id is not None and caller_id == resource.creator_id,
                is_joined=resource.is_joined(caller_id),
            )
        )

    def _list_query(self, filters: ListFilters) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if filters.status:
            query["status"] = filters.status
        if filters.category:
            query["category"] = filters.category
        if filters.search:
            rx = {"$regex": re.escape(filters.search.strip()), "$options": "i"}
            query["$or"] = [{"title": rx}, {"description": rx}]
        span: dict[str, Any] = {}
        if filters.date_from is not None:
            span["$gte"] = filters.date_from
        if filters.date_to is not None:
            span["$lte"] = filters.date_to
        if span:
            query[self.kind.date_field] = span
        return query

    async def list_resources(
        self,
        filters: ListFilters | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> ResourcePage:
        """Liste paginée et filtrée, sans le détail des participants.

        Args:
            filters (ListFilters | None): Filtres et tri.
            page (int): Page (1-based).
            page_size (int | None): Taille de page (bornée par `max_page_size`).

        Returns:
            ResourcePage: Éléments de la page + total.
        """
        filters = filters or ListFilters()
        page = max(page, 1)
        size = min(max(page_size or self.settings.default_page_size, 1), self.settings.max_page_size)

        sort_field = filters.sort_by if filters.sort_by in SORTABLE_FIELDS else self.kind.date_field
        direction = -1 if filters.order == "desc" else 1

        query = self._list_query(filters)
        total = await self.store.count(query)
        docs = await self.store.find_many(
            query,
            projection=LIST_PROJECTION,
            sort=[(sort_field, direction), ("_id", direction)],
            skip=(page - 1) * size,
            limit=size,
        )
        return ResourcePage(items=[self.kind.parse(d) for d in docs], total=total, page=page, page_size=size)

    async def created_by(self, user_id: str) -> CreatedResources:
        """Ressources créées par `user_id`, avec compteurs par statut et total des participants actifs."""
        docs = await self.store.find_many(
            {"creator_id": user_id}, projection=LIST_PROJECTION, sort=[("created_at", -1)]
        )
        items = [self.kind.parse(d) for d in docs]
        counts = {status: 0 for status in ("active", "cancelled", "completed")}
        for r in items:
            counts[r.status] = counts.get(r.status, 0) + 1
        return CreatedResources(
            items=items,
            total=len(items),
            counts=counts,
            total_participants=sum(r.active_participant_count for r in items),
        )
