# backend/ecotrack/db/mongodb.py
# Client MongoDB (motor) construit à la demande depuis les settings, et dépendance FastAPI `get_db`.

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from ecotrack.core.settings import get_settings

_client: AsyncIOMotorClient | None = None


def get_client() -> AsyncIOMotorClient:
    """Retourne le client MongoDB partagé (créé au premier appel).

    Description:
        Le client est `tz_aware` (dates renvoyées en UTC aware) et borné par
        `mongodb_timeout_ms` pour la sélection serveur, la connexion et les sockets.
        Aucune connexion n’est ouverte avant la première opération.

    Returns:
        AsyncIOMotorClient: Client motor.
    """
    global _client
    if _client is None:
        settings = get_settings()
        _client = AsyncIOMotorClient(
            settings.mongodb_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
            connectTimeoutMS=settings.mongodb_timeout_ms,
            socketTimeoutMS=settings.mongodb_timeout_ms,
        )
    return _client


def get_db() -> AsyncIOMotorDatabase:
    """Dépendance FastAPI : base de données applicative."""
    return get_client()[get_settings().mongodb_db]


def close_client() -> None:
    """Ferme le client partagé (arrêt de l’application)."""
    global _client
    if _client is not None:
        _client.close()
        _client = None
