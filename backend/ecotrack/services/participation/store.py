# backend/ecotrack/services/participation/store.py
# Accès Mongo d’une collection de ressources : lecture et primitives atomiques mono-document.

from __future__ import annotations

from typing import Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from ecotrack.core.bson_utils import to_bson_dates

from .kinds import ResourceKind

Filter = dict[str, Any]
Update = dict[str, Any]


class ResourceStore:
    """Capacité de stockage d’un type de ressource.

    Description:
        Fine couche sur la collection motor. Le moteur de participation n’utilise
        que `load` et `conditional_update` ; le cycle de vie y ajoute insertion,
        suppression conditionnelle et sondes d’existence. Aucun état en mémoire :
        une instance peut être partagée entre requêtes concurrentes.
    """

    def __init__(self, db: AsyncIOMotorDatabase, kind: ResourceKind):
        """Initialiser le store.

        Args:
            db: Instance de base de données MongoDB.
            kind: Type de ressource (détermine la collection).
        """
        self.kind = kind
        self.collection = db[kind.collection]

    async def load(self, resource_id: ObjectId) -> dict[str, Any] | None:
        """Document par `_id`, ou None."""
        return await self.collection.find_one({"_id": resource_id})

    async def load_by_slug(self, slug: str) -> dict[str, Any] | None:
        return await self.collection.find_one({"slug": slug})

    async def conditional_update(self, filter_: Filter, update: Update) -> dict[str, Any] | None:
        """Applique `update` au document correspondant à `filter_`, atomiquement.

        Description:
            Le prédicat et la mutation sont évalués ensemble par le serveur
            (`find_one_and_update`). Retourne le document après mise à jour, ou
            None si aucun document ne correspondait au prédicat.

        Args:
            filter_ (dict): Prédicat complet (identifiant + préconditions).
            update (dict): Expression de mise à jour Mongo.

        Returns:
            dict | None: Document mis à jour, ou None (pas de correspondance).
        """
        return await self.collection.find_one_and_update(
            to_bson_dates(filter_), to_bson_dates(update), return_document=ReturnDocument.AFTER
        )

    async def insert(self, doc: dict[str, Any]) -> ObjectId:
        res = await self.collection.insert_one(to_bson_dates(doc))
        return res.inserted_id

    async def conditional_delete(self, filter_: Filter) -> bool:
        """Supprime le document correspondant au prédicat ; True si supprimé."""
        res = await self.collection.delete_one(to_bson_dates(filter_))
        return res.deleted_count == 1

    async def exists(self, filter_: Filter) -> bool:
        return await self.collection.find_one(to_bson_dates(filter_), {"_id": 1}) is not None

    async def find_many(
        self,
        filter_: Filter,
        *,
        projection: dict[str, Any] | None = None,
        sort: list[tuple[str, int]] | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        cursor = self.collection.find(to_bson_dates(filter_), projection, sort=sort, skip=skip, limit=limit)
        return await cursor.to_list(length=None)

    async def count(self, filter_: Filter) -> int:
        return await self.collection.count_documents(to_bson_dates(filter_))
