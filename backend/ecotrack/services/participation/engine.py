# backend/ecotrack/services/participation/engine.py
# Moteur de participation générique (join/leave) : préconditions et compteur maintenus par mises à jour conditionnelles atomiques.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from bson import ObjectId

from ecotrack.core.bson_utils import parse_object_id
from ecotrack.core.utils import utcnow
from ecotrack.models.resource import Participation, Resource

from .outcomes import FailureKind, Outcome
from .store import ResourceStore

logger = logging.getLogger(__name__)

COUNT_FIELD = "active_participant_count"


@dataclass(frozen=True)
class JoinResult:
    resource: Resource
    participation: Participation


@dataclass(frozen=True)
class ParticipantsView:
    """Participants vus par l’appelant.

    Attributes:
        total (int): Participants actifs.
        capacity (int | None): Capacité.
        spots_remaining (int | None): Places restantes (None si illimité).
        participants (list[Participation] | None): Liste détaillée, réservée au créateur.
    """
    total: int
    capacity: int | None
    spots_remaining: int | None
    participants: list[Participation] | None = None


@dataclass(frozen=True)
class JoinedResources:
    items: list[Resource]
    total: int
    upcoming: int
    past: int


def _entry_for(doc: dict[str, Any], user_id: str) -> dict[str, Any] | None:
    for p in doc.get("participants") or []:
        if p.get("user_id") == user_id:
            return p
    return None


class ParticipationEngine:
    """Join/leave sur une collection de ressources.

    Description:
        Chaque mutation est une seule mise à jour conditionnelle dont le filtre
        reprend toutes les préconditions ; le serveur Mongo tranche donc les
        courses au niveau du document. Quand le filtre ne correspond pas, le
        document est relu uniquement pour nommer la précondition en échec. Si la
        relecture ne révèle aucun échec (document modifié entre lecture et
        écriture, ex. capacité éditée), la tentative est rejouée, au plus
        `max_attempts` fois.

        Le moteur ne garde aucun état : une instance par requête ou partagée,
        c’est équivalent.
    """

    def __init__(self, store: ResourceStore, max_attempts: int = 5):
        """Initialiser le moteur.

        Args:
            store: Accès à la collection du type de ressource.
            max_attempts: Nombre maximal de tentatives conditionnelles par opération.
        """
        self.store = store
        self.kind = store.kind
        self.max_attempts = max_attempts

    # ------------------------------------------------------------------ join

    async def join(self, resource_id: str | ObjectId, user_id: str) -> Outcome[JoinResult]:
        """Inscrire `user_id` à la ressource.

        Args:
            resource_id: Identifiant de la ressource.
            user_id: Identifiant de l’appelant.

        Returns:
            Outcome[JoinResult]: Ressource mise à jour et participation de l’appelant,
            ou NOT_FOUND / CREATOR_CANNOT_JOIN / NOT_ACTIVE / ALREADY_JOINED / FULL / CONFLICT.
        """
        oid = parse_object_id(resource_id)
        if oid is None:
            return Outcome.fail(FailureKind.NOT_FOUND)

        for _ in range(self.max_attempts):
            doc = await self.store.load(oid)
            blocker = self._join_blocker(doc, user_id)
            if blocker is not None:
                return Outcome.fail(blocker)

            filter_, update = self._join_operation(doc, user_id)
            updated = await self.store.conditional_update(filter_, update)
            if updated is not None:
                resource = self.kind.parse(updated)
                participation = resource.participation_of(user_id)
                logger.info(
                    "%s %s joined by %s (%s/%s)", self.kind.name, oid, user_id,
                    resource.active_participant_count, resource.capacity,
                )
                return Outcome.success(JoinResult(resource=resource, participation=participation))

            logger.debug("%s %s: join predicate did not match, re-checking", self.kind.name, oid)

        logger.warning("%s %s: join by %s gave up after %s attempts", self.kind.name, oid, user_id, self.max_attempts)
        return Outcome.fail(FailureKind.CONFLICT)

    def _join_blocker(self, doc: dict[str, Any] | None, user_id: str) -> FailureKind | None:
        """Première précondition de join non satisfaite, dans l’ordre contractuel."""
        if doc is None:
            return FailureKind.NOT_FOUND
        if doc.get("creator_id") == user_id:
            return FailureKind.CREATOR_CANNOT_JOIN
        if doc.get("status") != "active" or self.kind.has_closed(doc):
            return FailureKind.NOT_ACTIVE
        entry = _entry_for(doc, user_id)
        if entry is not None and entry.get("status") == "active":
            return FailureKind.ALREADY_JOINED
        capacity = doc.get("capacity")
        if capacity is not None and doc.get(COUNT_FIELD, 0) >= capacity:
            return FailureKind.FULL
        return None

    def _join_operation(self, doc: dict[str, Any], user_id: str) -> tuple[dict[str, Any], dict[str, Any]]:
        """Filtre + mise à jour d’un join, construits à partir de l’état lu.

        Description:
            Le filtre ré-énonce chaque précondition côté serveur. La capacité lue
            fait partie du filtre : si elle change entre-temps, rien ne correspond
            et la tentative est rejouée avec la nouvelle valeur.
        """
        now = utcnow()
        filter_: dict[str, Any] = {
            "_id": doc["_id"],
            "status": "active",
            "creator_id": {"$ne": user_id},
        }
        capacity = doc.get("capacity")
        if capacity is None:
            filter_["capacity"] = None
        else:
            filter_["capacity"] = capacity
            filter_[COUNT_FIELD] = {"$lt": capacity}

        # Clôture : la date lue doit toujours être à venir au moment de l’écriture
        closes = self.kind.closes_field
        filter_[closes] = None if doc.get(closes) is None else {"$gt": now}

        if _entry_for(doc, user_id) is None:
            # Premier join : aucune entrée pour cet utilisateur
            filter_["participants.user_id"] = {"$ne": user_id}
            update = {
                "$push": {
                    "participants": {"user_id": user_id, "status": "active", "joined_at": now, "left_at": None}
                },
                "$inc": {COUNT_FIELD: 1},
                "$set": {"updated_at": now},
            }
        else:
            # Re-join : on réactive l’entrée existante (jamais de doublon)
            filter_["participants"] = {"$elemMatch": {"user_id": user_id, "status": "left"}}
            update = {
                "$set": {
                    "participants.$.status": "active",
                    "participants.$.joined_at": now,
                    "participants.$.left_at": None,
                    "updated_at": now,
                },
                "$inc": {COUNT_FIELD: 1},
            }
        return filter_, update

    # ----------------------------------------------------------------- leave

    async def leave(self, resource_id: str | ObjectId, user_id: str) -> Outcome[Resource]:
        """Désinscrire `user_id` : son entrée active passe à `left`, le compteur décroît.

        Returns:
            Outcome[Resource]: Ressource mise à jour, ou NOT_FOUND / NOT_JOINED / CONFLICT.
        """
        oid = parse_object_id(resource_id)
        if oid is None:
            return Outcome.fail(FailureKind.NOT_FOUND)

        for _ in range(self.max_attempts):
            now = utcnow()
            updated = await self.store.conditional_update(
                {"_id": oid, "participants": {"$elemMatch": {"user_id": user_id, "status": "active"}}},
                {
                    "$set": {
                        "participants.$.status": "left",
                        "participants.$.left_at": now,
                        "updated_at": now,
                    },
                    "$inc": {COUNT_FIELD: -1},
                },
            )
            if updated is not None:
                resource = self.kind.parse(updated)
                logger.info(
                    "%s %s left by %s (%s/%s)", self.kind.name, oid, user_id,
                    resource.active_participant_count, resource.capacity,
                )
                return Outcome.success(resource)

            # Diagnostic uniquement
            doc = await self.store.load(oid)
            if doc is None:
                return Outcome.fail(FailureKind.NOT_FOUND)
            entry = _entry_for(doc, user_id)
            if entry is None or entry.get("status") != "active":
                return Outcome.fail(FailureKind.NOT_JOINED)

        return Outcome.fail(FailureKind.CONFLICT)

    # ----------------------------------------------------------------- reads

    async def list_participants(self, resource_id: str | ObjectId, caller_id: str | None = None) -> Outcome[ParticipantsView]:
        """Participants actifs : liste complète pour le créateur, compteurs pour les autres."""
        oid = parse_object_id(resource_id)
        doc = await self.store.load(oid) if oid is not None else None
        if doc is None:
            return Outcome.fail(FailureKind.NOT_FOUND)

        resource = self.kind.parse(doc)
        participants = None
        if caller_id is not None and caller_id == resource.creator_id:
            participants = [p for p in resource.participants if p.status == "active"]
        return Outcome.success(
            ParticipantsView(
                total=resource.active_participant_count,
                capacity=resource.capacity,
                spots_remaining=resource.spots_remaining,
                participants=participants,
            )
        )

    async def joined_by(
        self,
        user_id: str,
        when: Literal["upcoming", "past", "all"] = "upcoming",
    ) -> JoinedResources:
        """Ressources où `user_id` a une participation active.

        Description:
            `upcoming` / `past` se découpent sur la date de clôture du type
            (fin du challenge, date de l’événement). Les compteurs portent sur
            l’ensemble des ressources rejointes, indépendamment du filtre.

        Args:
            user_id: Identifiant de l’utilisateur.
            when: Fenêtre demandée.

        Returns:
            JoinedResources: Ressources filtrées + compteurs upcoming/past.
        """
        joined = {"participants": {"$elemMatch": {"user_id": user_id, "status": "active"}}}
        now = utcnow()
        closes = self.kind.closes_field
        upcoming_q = {**joined, closes: {"$gte": now}}
        past_q = {**joined, closes: {"$lt": now}}

        query = {"upcoming": upcoming_q, "past": past_q, "all": joined}[when]
        docs = await self.store.find_many(query, sort=[(closes, 1)])
        return JoinedResources(
            items=[self.kind.parse(d) for d in docs],
            total=len(docs),
            upcoming=await self.store.count(upcoming_q),
            past=await self.store.count(past_q),
        )
