# backend/ecotrack/services/participation/outcomes.py
# Résultats typés des opérations (succès ou motif d’échec nommé), communs au moteur et au cycle de vie.

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    """Motifs d’échec métier. Les erreurs du store (réseau, timeout) ne passent pas par ici."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    CREATOR_CANNOT_JOIN = "CREATOR_CANNOT_JOIN"
    NOT_ACTIVE = "NOT_ACTIVE"
    ALREADY_JOINED = "ALREADY_JOINED"
    FULL = "FULL"
    NOT_JOINED = "NOT_JOINED"
    INVALID_CAPACITY = "INVALID_CAPACITY"


DEFAULT_MESSAGES: dict[FailureKind, str] = {
    FailureKind.NOT_FOUND: "Resource not found",
    FailureKind.FORBIDDEN: "Only the creator can modify this resource",
    FailureKind.VALIDATION_ERROR: "Validation failed",
    FailureKind.CONFLICT: "Conflicting concurrent modification",
    FailureKind.CREATOR_CANNOT_JOIN: "Creators cannot join their own resource",
    FailureKind.NOT_ACTIVE: "Resource is not open for joining",
    FailureKind.ALREADY_JOINED: "You have already joined",
    FailureKind.FULL: "No spots remaining",
    FailureKind.NOT_JOINED: "You are not a participant",
    FailureKind.INVALID_CAPACITY: "Capacity cannot be lower than the current participant count",
}


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Résultat d’une opération : `value` en cas de succès, `failure` sinon.

    Description:
        Un seul type de retour pour toutes les opérations, jamais de `None`
        ambigu : l’appelant teste `ok` puis lit `value` ou `failure`.

    Attributes:
        value (T | None): Charge utile du succès.
        failure (FailureKind | None): Motif d’échec.
        message (str | None): Message lisible.
        details (list[dict]): Détails par champ (erreurs de validation).
    """

    value: T | None = None
    failure: FailureKind | None = None
    message: str | None = None
    details: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, kind: FailureKind, message: str | None = None, details: list[dict[str, Any]] | None = None) -> Outcome[T]:
        return cls(failure=kind, message=message or DEFAULT_MESSAGES[kind], details=details or [])
