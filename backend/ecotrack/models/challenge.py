# backend/ecotrack/models/challenge.py
# Représentation d’un challenge éco (catégorie, durée, dates, consignes) et payloads de création/mise à jour.

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from ecotrack.core.utils import utcnow
from ecotrack.models.resource import Resource, validate_aware, validate_image_url

ChallengeCategory = Literal[
    "Energy Conservation",
    "Water Conservation",
    "Sustainable Transport",
    "Green Living",
    "Waste Reduction",
]
ChallengeDifficulty = Literal["Beginner", "Intermediate", "Advanced"]


class ChallengeFields(BaseModel):
    """Champs descriptifs d’un challenge.

    Attributes:
        category (ChallengeCategory): Catégorie.
        description (str): Description courte.
        duration (int): Durée en jours.
        target (str | None): Objectif chiffré libre.
        start_date (datetime): Début.
        end_date (datetime): Fin (après le début).
        difficulty (ChallengeDifficulty): Niveau.
        instructions (list[str]): Consignes.
        tips (list[str]): Astuces.
        image_url (str | None): Illustration.
    """
    category: ChallengeCategory
    description: str
    duration: int
    target: str | None = None
    start_date: dt.datetime
    end_date: dt.datetime
    difficulty: ChallengeDifficulty = "Beginner"
    instructions: list[str] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    image_url: str | None = None


class Challenge(Resource, ChallengeFields):
    """Document Mongo d’un challenge (capacité optionnelle)."""


class ChallengeCreate(BaseModel):
    """Payload de création d’un challenge."""
    title: str = Field(..., min_length=3, max_length=100)
    category: ChallengeCategory
    description: str = Field(..., min_length=10, max_length=500)
    duration: int = Field(..., ge=1, le=365)
    target: str | None = Field(default=None, max_length=200)
    start_date: dt.datetime
    end_date: dt.datetime
    difficulty: ChallengeDifficulty = "Beginner"
    instructions: list[str] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    image_url: str | None = None
    capacity: int | None = Field(default=None, ge=1, le=100000)

    @field_validator("start_date", "end_date")
    @classmethod
    def aware_dates(cls, v: dt.datetime | None) -> dt.datetime | None:
        return validate_aware(v)

    @field_validator("image_url", mode="before")
    @classmethod
    def check_image_url(cls, v: Any) -> str | None:
        return validate_image_url(v)

    @field_validator("title", "description", "target")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v

    @field_validator("instructions", "tips")
    @classmethod
    def check_list_items(cls, v: list[str]) -> list[str]:
        for item in v:
            if len(item) > 200:
                raise ValueError("items must be at most 200 characters")
        return v

    @model_validator(mode="after")
    def check_dates(self) -> ChallengeCreate:
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        if self.end_date <= utcnow():
            raise ValueError("end_date must be in the future")
        return self

    def to_document_fields(self) -> dict[str, Any]:
        return self.model_dump()


class ChallengeUpdate(BaseModel):
    """Payload de mise à jour partielle d’un challenge."""
    title: str | None = Field(default=None, min_length=3, max_length=100)
    category: ChallengeCategory | None = None
    description: str | None = Field(default=None, min_length=10, max_length=500)
    duration: int | None = Field(default=None, ge=1, le=365)
    target: str | None = Field(default=None, max_length=200)
    start_date: dt.datetime | None = None
    end_date: dt.datetime | None = None
    difficulty: ChallengeDifficulty | None = None
    instructions: list[str] | None = None
    tips: list[str] | None = None
    image_url: str | None = None
    capacity: int | None = Field(default=None, ge=1, le=100000)
    status: Literal["active", "cancelled", "completed"] | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def aware_dates(cls, v: dt.datetime | None) -> dt.datetime | None:
        return validate_aware(v)

    @field_validator("image_url", mode="before")
    @classmethod
    def check_image_url(cls, v: Any) -> str | None:
        return validate_image_url(v)

    @field_validator("title", "description", "target")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_dates(self) -> ChallengeUpdate:
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self

    def to_update_fields(self) -> dict[str, Any]:
        # `null` explicite : seulement pour les champs effaçables
        fields = self.model_dump(exclude_unset=True)
        return {k: v for k, v in fields.items() if v is not None or k in {"target", "image_url", "capacity"}}
