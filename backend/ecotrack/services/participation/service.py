# backend/ecotrack/services/participation/service.py
# Point d’entrée par type de ressource : un store partagé par le moteur de participation et le cycle de vie.

from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorDatabase

from ecotrack.core.settings import Settings, get_settings

from .engine import ParticipationEngine
from .kinds import ResourceKind
from .lifecycle import ResourceLifecycle
from .store import ResourceStore


class ResourceService:
    """Regroupe `ParticipationEngine` et `ResourceLifecycle` pour un type donné.

    Args:
        db (AsyncIOMotorDatabase): Base de données.
        kind (ResourceKind): Type de ressource (challenge, event).
        settings (Settings | None): Configuration (bornes de tentatives, pagination).
    """

    def __init__(self, db: AsyncIOMotorDatabase, kind: ResourceKind, settings: Settings | None = None):
        settings = settings or get_settings()
        self.kind = kind
        self.store = ResourceStore(db, kind)
        self.engine = ParticipationEngine(self.store, max_attempts=settings.participation_max_attempts)
        self.lifecycle = ResourceLifecycle(self.store, settings)
