"""Path grammar and per-field value schemas.

Every addressable field of an entity has one canonical path::

    {person|office}/{id}/name
    {person|office}/{id}/photo
    {person|office}/{id}/contact/{contact_type}
    office/{id}/supervisor/{relation}
    person/{id}/tenure/{office_id}/{start}

``start`` is an ISO date or empty for an unknown start date, so a tenure
path may end with ``/``.  ``parse_path`` checks the grammar and
``validate_value`` checks and canonicalises the JSON value stored at a
parsed path.  Both raise ``ValidationError`` naming the violated rule.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

import pydantic
from pydantic import BaseModel

from govdir.errors import ValidationError
from govdir.record.models import (
    ContactType,
    EntityType,
    Photo,
    SupervisingRelation,
)
from govdir.validators import (
    validate_entity_id,
    validate_iso_date,
    validate_text,
    validate_url,
)

NAME_MAX_LENGTH = {EntityType.PERSON: 64, EntityType.OFFICE: 128}


class FieldKind(str, Enum):
    """Kinds of addressable entity fields."""

    NAME = "name"
    PHOTO = "photo"
    CONTACT = "contact"
    SUPERVISOR = "supervisor"
    TENURE = "tenure"


class RecordPath(BaseModel):
    """A parsed, validated field path.

    Attributes:
        entity_type: ``person`` or ``office``.
        entity_id: Caller-assigned entity id.
        kind: Which field the path addresses.
        contact_type: Set for ``contact/{type}`` paths.
        relation: Set for ``supervisor/{relation}`` paths.
        office_id: Set for tenure paths.
        start: Tenure start date, ``None`` when unknown.
    """

    entity_type: EntityType
    entity_id: str
    kind: FieldKind
    contact_type: ContactType | None = None
    relation: SupervisingRelation | None = None
    office_id: str | None = None
    start: str | None = None

    model_config = {"frozen": True}

    @property
    def field(self) -> str:
        """The path below the entity, e.g. ``contact/email``."""
        if self.kind == FieldKind.CONTACT:
            return f"contact/{self.contact_type.value}"
        if self.kind == FieldKind.SUPERVISOR:
            return f"supervisor/{self.relation.value}"
        if self.kind == FieldKind.TENURE:
            return f"tenure/{self.office_id}/{self.start or ''}"
        return self.kind.value

    @property
    def path(self) -> str:
        return f"{entity_prefix(self.entity_type, self.entity_id)}{self.field}"

    @property
    def entity_key(self) -> tuple[EntityType, str]:
        return self.entity_type, self.entity_id


def entity_prefix(entity_type: EntityType | str, entity_id: str) -> str:
    """Return the path prefix shared by all fields of one entity."""
    return f"{EntityType(entity_type).value}/{entity_id}/"


def make_path(
    entity_type: EntityType | str,
    entity_id: str,
    field: str,
    person_id_max_length: int | None = None,
) -> RecordPath:
    """Parse the path of *field* on the given entity."""
    return parse_path(
        f"{entity_prefix(entity_type, entity_id)}{field}",
        person_id_max_length=person_id_max_length,
    )


def parse_path(
    path: str, person_id_max_length: int | None = None
) -> RecordPath:
    """Parse and validate a full field path.

    Args:
        path: Slash-delimited path.
        person_id_max_length: Reject person ids longer than this.

    Returns:
        The parsed ``RecordPath``.

    Raises:
        ValidationError: If any segment violates the grammar.
    """
    parts = path.split("/")
    if len(parts) < 3:
        raise ValidationError(
            "path must have the form {entity_type}/{entity_id}/{field}",
            path=path,
        )

    type_part, entity_id, kind_part, rest = parts[0], parts[1], parts[2], parts[3:]
    try:
        entity_type = EntityType(type_part)
    except ValueError:
        raise ValidationError(
            f"unknown entity type '{type_part}' (expected person or office)",
            path=path,
        ) from None

    max_length = (
        person_id_max_length if entity_type == EntityType.PERSON else None
    )
    ok, reason = validate_entity_id(entity_id, max_length)
    if not ok:
        raise ValidationError(reason, path=path)

    try:
        kind = FieldKind(kind_part)
    except ValueError:
        raise ValidationError(f"unknown field '{kind_part}'", path=path) from None

    fields: dict[str, Any] = {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "kind": kind,
    }

    if kind in (FieldKind.NAME, FieldKind.PHOTO):
        if rest:
            raise ValidationError(
                f"'{kind.value}' takes no sub-path", path=path
            )

    elif kind == FieldKind.CONTACT:
        if len(rest) != 1:
            raise ValidationError(
                "contact path must be contact/{type}", path=path
            )
        try:
            fields["contact_type"] = ContactType(rest[0])
        except ValueError:
            raise ValidationError(
                f"unknown contact type '{rest[0]}'", path=path
            ) from None

    elif kind == FieldKind.SUPERVISOR:
        if entity_type != EntityType.OFFICE:
            raise ValidationError(
                "supervisor relations are only valid on offices", path=path
            )
        if len(rest) != 1:
            raise ValidationError(
                "supervisor path must be supervisor/{relation}", path=path
            )
        try:
            fields["relation"] = SupervisingRelation(rest[0])
        except ValueError:
            raise ValidationError(
                f"unknown supervising relation '{rest[0]}'", path=path
            ) from None

    elif kind == FieldKind.TENURE:
        if entity_type != EntityType.PERSON:
            raise ValidationError(
                "tenures are only valid on persons", path=path
            )
        if len(rest) != 2:
            raise ValidationError(
                "tenure path must be tenure/{office_id}/{start}", path=path
            )
        office_id, start = rest
        ok, reason = validate_entity_id(office_id)
        if not ok:
            raise ValidationError(f"tenure office: {reason}", path=path)
        if start:
            ok, reason = validate_iso_date(start, "Tenure start")
            if not ok:
                raise ValidationError(reason, path=path)
        fields["office_id"] = office_id
        fields["start"] = start or None

    return RecordPath(**fields)


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


def validate_value(record_path: RecordPath, value: Any) -> Any:
    """Check *value* against the schema of *record_path*'s field kind.

    Returns:
        The canonical form of the value (e.g. a photo without a null
        attribution).

    Raises:
        ValidationError: Naming the violated constraint.
    """
    path = record_path.path
    kind = record_path.kind

    if kind == FieldKind.NAME:
        ok, reason = validate_text(
            value, "Name", NAME_MAX_LENGTH[record_path.entity_type]
        )
        if not ok:
            raise ValidationError(reason, path=path)
        return value

    if kind == FieldKind.PHOTO:
        if not isinstance(value, dict):
            raise ValidationError(
                "photo must be an object {url, attribution?}", path=path
            )
        try:
            photo = Photo.model_validate(value)
        except pydantic.ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'photo'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ValidationError(f"invalid photo ({problems})", path=path) from None
        ok, reason = validate_url(photo.url)
        if not ok:
            raise ValidationError(reason, path=path)
        return photo.model_dump(exclude_none=True)

    if kind == FieldKind.CONTACT:
        ok, reason = validate_text(value, "Contact")
        if not ok:
            raise ValidationError(reason, path=path)
        return value

    if kind == FieldKind.SUPERVISOR:
        if not isinstance(value, str):
            raise ValidationError(
                "supervisor must be an office id string", path=path
            )
        ok, reason = validate_entity_id(value)
        if not ok:
            raise ValidationError(f"supervisor: {reason}", path=path)
        return value

    # Tenure: the stored value is the end date, null while current.
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(
            "tenure end must be an ISO date string or null", path=path
        )
    ok, reason = validate_iso_date(value, "Tenure end")
    if not ok:
        raise ValidationError(reason, path=path)
    return value


def encode_value(value: Any) -> bytes:
    """Canonical JSON bytes of a field value, as stored in the tree."""
    return json.dumps(
        value, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def decode_value(data: bytes) -> Any:
    return json.loads(data.decode("utf-8"))
