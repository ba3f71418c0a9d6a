# backend/ecotrack/models/event.py
# Représentation d’un événement (date, lieu, capacité obligatoire) et payloads de création/mise à jour.

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from ecotrack.core.utils import utcnow
from ecotrack.models.resource import Resource, validate_aware, validate_image_url

EventCategory = Literal["Community", "Education", "Environmental", "Workshop", "Social"]


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class EventLocation(BaseModel):
    """Lieu d’un événement.

    Attributes:
        address (str): Adresse.
        city (str): Ville.
        state (str | None): Région / état.
        zip_code (str | None): Code postal.
        coordinates (Coordinates | None): Position GPS.
    """
    address: str = Field(..., min_length=5, max_length=200)
    city: str = Field(..., min_length=2, max_length=100)
    state: str | None = Field(default=None, min_length=2, max_length=100)
    zip_code: str | None = Field(default=None, max_length=20)
    coordinates: Coordinates | None = None


class EventFields(BaseModel):
    description: str
    detailed_description: str | None = None
    date: dt.datetime
    end_date: dt.datetime | None = None
    location: EventLocation
    organizer_name: str | None = None
    category: EventCategory = "Community"
    requirements: str | None = None
    benefits: str | None = None
    image_url: str | None = None


class Event(Resource, EventFields):
    """Document Mongo d’un événement.

    Description:
        La capacité est toujours renseignée (issue de `max_participants`).
    """


class EventCreate(BaseModel):
    """Payload de création d’un événement.

    Description:
        `max_participants` devient la `capacity` du document.
    """
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=20, max_length=500)
    detailed_description: str | None = Field(default=None, min_length=50, max_length=2000)
    date: dt.datetime
    end_date: dt.datetime | None = None
    location: EventLocation
    max_participants: int = Field(..., ge=1, le=10000)
    organizer_name: str | None = Field(default=None, min_length=2, max_length=50)
    category: EventCategory = "Community"
    requirements: str | None = Field(default=None, max_length=300)
    benefits: str | None = Field(default=None, max_length=300)
    image_url: str | None = None

    @field_validator("date", "end_date")
    @classmethod
    def aware_dates(cls, v: dt.datetime | None) -> dt.datetime | None:
        return validate_aware(v)

    @field_validator("image_url", mode="before")
    @classmethod
    def check_image_url(cls, v: Any) -> str | None:
        return validate_image_url(v)

    @field_validator("title", "description", "detailed_description", "organizer_name")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_dates(self) -> EventCreate:
        if self.date <= utcnow():
            raise ValueError("date must be in the future")
        if self.end_date is not None and self.end_date <= self.date:
            raise ValueError("end_date must be after date")
        return self

    def to_document_fields(self) -> dict[str, Any]:
        fields = self.model_dump(exclude={"max_participants"})
        fields["capacity"] = self.max_participants
        return fields


class EventUpdate(BaseModel):
    """Payload de mise à jour partielle d’un événement."""
    title: str | None = Field(default=None, min_length=5, max_length=100)
    description: str | None = Field(default=None, min_length=20, max_length=500)
    detailed_description: str | None = Field(default=None, min_length=50, max_length=2000)
    date: dt.datetime | None = None
    end_date: dt.datetime | None = None
    location: EventLocation | None = None
    max_participants: int | None = Field(default=None, ge=1, le=10000)
    organizer_name: str | None = Field(default=None, min_length=2, max_length=50)
    category: EventCategory | None = None
    requirements: str | None = Field(default=None, max_length=300)
    benefits: str | None = Field(default=None, max_length=300)
    image_url: str | None = None
    status: Literal["active", "cancelled", "completed"] | None = None

    @field_validator("date", "end_date")
    @classmethod
    def aware_dates(cls, v: dt.datetime | None) -> dt.datetime | None:
        return validate_aware(v)

    @field_validator("image_url", mode="before")
    @classmethod
    def check_image_url(cls, v: Any) -> str | None:
        return validate_image_url(v)

    @field_validator("date")
    @classmethod
    def not_in_past(cls, v: dt.datetime | None) -> dt.datetime | None:
        if v is not None and v < utcnow():
            raise ValueError("Cannot change date to past")
        return v

    def to_update_fields(self) -> dict[str, Any]:
        fields = self.model_dump(exclude_unset=True)
        if "max_participants" in fields:
            fields["capacity"] = fields.pop("max_participants")
        # `capacity: null` est conservé pour être refusé par la règle du type
        nullable = {"detailed_description", "end_date", "organizer_name", "requirements", "benefits", "image_url", "capacity"}
        return {k: v for k, v in fields.items() if v is not None or k in nullable}
