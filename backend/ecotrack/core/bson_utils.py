# backend/ecotrack/core/bson_utils.py
# ObjectId compatible Pydantic v2 + base model des documents Mongo (challenges, events).
from __future__ import annotations

import datetime as dt
from typing import Any

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler
from pydantic.json_schema import GetJsonSchemaHandler, JsonSchemaValue
from pydantic_core import core_schema


class PyObjectId(ObjectId):
    """ObjectId utilisable dans les modèles Pydantic v2.

    Description:
        Accepte un `ObjectId` ou une chaîne hex de 24 caractères, sérialise en
        chaîne dans les réponses JSON et expose un schéma OpenAPI `string/objectid`.
    """

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.json_or_python_schema(
            json_schema=core_schema.no_info_plain_validator_function(cls._validate),
            python_schema=core_schema.no_info_plain_validator_function(cls._validate),
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )

    @classmethod
    def __get_pydantic_json_schema__(cls, core_schema_obj: core_schema.CoreSchema, handler: GetJsonSchemaHandler) -> JsonSchemaValue:
        return {
            "type": "string",
            "format": "objectid",
            "pattern": "^[a-fA-F0-9]{24}$",
            "examples": ["507f1f77bcf86cd799439011"],
        }

    @classmethod
    def _validate(cls, v: Any) -> ObjectId:
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError(f"Invalid ObjectId: {v!r}")


class MongoBaseModel(BaseModel):
    """BaseModel Pydantic pour documents Mongo.

    Description:
        - `_id` exposé via l’alias `id` (type `PyObjectId`)
        - `populate_by_name` pour construire depuis un document brut ou un dict API
    """
    id: PyObjectId | None = Field(default=None, alias="_id")

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


def parse_object_id(value: str | ObjectId | None) -> ObjectId | None:
    """Convertit un identifiant en ObjectId, ou None s’il est invalide.

    Description:
        Utilisé aux frontières de service : un identifiant mal formé est traité
        comme « introuvable » plutôt que de lever une exception.

    Args:
        value (str | ObjectId | None): Identifiant brut.

    Returns:
        ObjectId | None: ObjectId valide, sinon None.
    """
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def to_bson_dates(value: Any) -> Any:
    """Convertit récursivement les dates aware en UTC naïf (représentation BSON).

    Description:
        Mongo stocke des dates UTC sans fuseau. Normaliser documents, filtres et
        expressions de mise à jour avant envoi garde des comparaisons cohérentes,
        quel que soit le fuseau des dates reçues par l’API.

    Args:
        value (Any): Document, liste ou scalaire.

    Returns:
        Any: Même structure, dates en UTC naïf.
    """
    if isinstance(value, dict):
        return {k: to_bson_dates(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_bson_dates(v) for v in value]
    if isinstance(value, dt.datetime) and value.tzinfo is not None:
        return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value
