"""Domain vocabulary and entity file models.

Defines the closed enumerations used in paths and the pydantic models for
the TOML files of the external data tree:

- ``EntityType``: ``person`` or ``office``.
- ``ContactType``: closed set of contact kinds.
- ``SupervisingRelation``: closed set of office-to-office relations.
- ``Photo``, ``Tenure``, ``PersonFile``, ``OfficeFile``: file contents.

All models are frozen and reject unknown keys.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class EntityType(str, Enum):
    """Top-level entity kinds, also the first path segment."""

    PERSON = "person"
    OFFICE = "office"


class ContactType(str, Enum):
    """Contact kinds accepted under ``contact/{type}``."""

    ADDRESS = "address"
    PHONE = "phone"
    EMAIL = "email"
    WEBSITE = "website"
    WIKIPEDIA = "wikipedia"
    X = "x"
    YOUTUBE = "youtube"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    WIKIDATA = "wikidata"


class SupervisingRelation(str, Enum):
    """Relations accepted under ``supervisor/{relation}`` (offices only)."""

    HEAD = "head"
    ADVISER = "adviser"
    DURING_THE_PLEASURE_OF = "during_the_pleasure_of"
    RESPONSIBLE_TO = "responsible_to"
    MEMBER_OF = "member_of"
    MINISTER = "minister"


class Photo(BaseModel):
    """Photo reference.

    Attributes:
        url: Absolute http(s) URL of the image.
        attribution: Optional credit line.
    """

    url: str
    attribution: str | None = Field(default=None, max_length=256)

    model_config = {"frozen": True, "extra": "forbid"}


class Tenure(BaseModel):
    """One person-in-office record of a person file.

    Attributes:
        office_id: Id of the office held.
        start: ISO date the tenure started, ``None`` when unknown.
        end: ISO date the tenure ended, ``None`` while current.
    """

    office_id: str = Field(min_length=1, max_length=64)
    start: str | None = None
    end: str | None = None

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("start", "end", mode="before")
    @classmethod
    def _date_to_text(cls, value: Any) -> Any:
        # Hand-edited files may use bare TOML dates.
        if isinstance(value, date):
            return value.isoformat()
        return value


class PersonFile(BaseModel):
    """Contents of ``person/{id}.toml``."""

    name: str | None = None
    photo: Photo | None = None
    contacts: dict[ContactType, str] = {}
    tenures: list[Tenure] = []

    model_config = {"frozen": True, "extra": "forbid"}


class OfficeFile(BaseModel):
    """Contents of ``office/{id}.toml``."""

    name: str | None = None
    photo: Photo | None = None
    contacts: dict[ContactType, str] = {}
    supervisors: dict[SupervisingRelation, str] = {}

    model_config = {"frozen": True, "extra": "forbid"}
