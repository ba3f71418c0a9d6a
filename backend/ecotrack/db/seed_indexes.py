# backend/ecotrack/db/seed_indexes.py
"""
Idempotent index seeding for the resource collections (challenges, events).

- Matching by KEYS: if an index with same keys exists, keep it when options match.
- If options differ (unique / sparse / partialFilterExpression), drop & recreate.
- `slug` is unique per collection; `participants.user_id` backs the "joined by me" queries.
- Challenges also get a unique `title_key` (normalised title) for concurrent creations.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Union

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.operations import IndexModel

from ecotrack.services.participation.kinds import RESOURCE_KINDS

Direction = Union[int, str]
KeySpec = List[Tuple[str, Direction]]


def _normalize_key(key_spec: Any) -> KeySpec:
    """`index_information()` renvoie une liste de tuples ; certains drivers un mapping."""
    items = key_spec.items() if hasattr(key_spec, "items") else key_spec
    norm: KeySpec = []
    for k, v in items:
        norm.append((k, int(v) if isinstance(v, (int, float)) else str(v)))
    return norm


def _same_options(existing: Dict[str, Any], *, unique: Optional[bool], sparse: Optional[bool],
                  partial: Optional[Dict[str, Any]]) -> bool:
    if bool(unique) != bool(existing.get("unique", False)):
        return False
    if bool(sparse) != bool(existing.get("sparse", False)):
        return False
    return (partial or None) == (existing.get("partialFilterExpression") or None)


async def ensure_index(db: AsyncIOMotorDatabase, coll_name: str, keys: KeySpec, *,
                       name: Optional[str] = None,
                       unique: Optional[bool] = None,
                       sparse: Optional[bool] = None,
                       partial: Optional[Dict[str, Any]] = None) -> str:
    """Crée l’index s’il manque, le recrée si ses options ont changé.

    Returns:
        str: "kept" | "created" | "replaced".
    """
    coll = db[coll_name]
    info = await coll.index_information()
    existing_name, existing = None, None
    for ix_name, ix in info.items():
        if _normalize_key(ix.get("key", [])) == keys:
            existing_name, existing = ix_name, ix
            break

    if existing is not None and _same_options(existing, unique=unique, sparse=sparse, partial=partial):
        return "kept"
    if existing_name is not None:
        await coll.drop_index(existing_name)

    opts: Dict[str, Any] = {}
    if name:
        opts["name"] = name
    if unique is not None:
        opts["unique"] = unique
    if sparse:
        opts["sparse"] = True
    if partial:
        opts["partialFilterExpression"] = partial
    await coll.create_indexes([IndexModel(keys, **opts)])
    return "replaced" if existing_name is not None else "created"


async def ensure_indexes(db: AsyncIOMotorDatabase) -> dict[str, dict[str, str]]:
    """Garantit les index de chaque collection de ressources.

    Returns:
        dict: `{collection: {index_name: status}}` pour le reporting.
    """
    report: dict[str, dict[str, str]] = {}
    for kind in RESOURCE_KINDS.values():
        coll = kind.collection
        specs: list[tuple[str, KeySpec, bool]] = [
            (f"uniq_{coll}_slug", [("slug", ASCENDING)], True),
            (f"ix_{coll}__creator", [("creator_id", ASCENDING), ("created_at", DESCENDING)], False),
            (f"ix_{coll}__status", [("status", ASCENDING)], False),
            (f"ix_{coll}__category", [("category", ASCENDING)], False),
            (f"ix_{coll}__participant_user", [("participants.user_id", ASCENDING)], False),
            (f"ix_{coll}__status_date", [("status", ASCENDING), (kind.date_field, ASCENDING)], False),
        ]
        report[coll] = {}
        for name, keys, unique in specs:
            report[coll][name] = await ensure_index(db, coll, keys, name=name, unique=unique or None)
        if kind.unique_title:
            name = f"uniq_{coll}_title_key"
            report[coll][name] = await ensure_index(
                db, coll, [("title_key", ASCENDING)], name=name, unique=True, sparse=True
            )
    return report
