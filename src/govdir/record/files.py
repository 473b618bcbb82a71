"""Conversion between entity fields and their TOML files.

Each entity is stored in the external tree as ``{type}/{id}.toml``::

    name = "Narendra Modi"

    [photo]
    url = "https://example.org/modi.jpg"

    [contacts]
    x = "narendramodi"

    [[tenures]]
    office_id = "pm"
    start = "2014-05-26"

Output is deterministic (fields in path order, enumerations in declaration
order) so re-exporting unchanged content produces identical bytes.
Uses tomlkit for reading and writing.
"""

from __future__ import annotations

from typing import Any

import pydantic
import tomlkit
from tomlkit.exceptions import TOMLKitError

from govdir.errors import ValidationError
from govdir.record.models import (
    ContactType,
    EntityType,
    OfficeFile,
    PersonFile,
    Photo,
    SupervisingRelation,
    Tenure,
)
from govdir.record.paths import FieldKind, RecordPath

EntityFile = PersonFile | OfficeFile


def file_model(entity_type: EntityType | str) -> type[EntityFile]:
    if EntityType(entity_type) == EntityType.PERSON:
        return PersonFile
    return OfficeFile


# ---------------------------------------------------------------------------
# Fields <-> model
# ---------------------------------------------------------------------------


def records_to_file(
    entity_type: EntityType | str,
    records: list[tuple[RecordPath, Any]],
) -> EntityFile:
    """Assemble the file model of one entity from its field records."""
    data: dict[str, Any] = {"contacts": {}}
    tenures: list[dict] = []
    supervisors: dict[str, str] = {}

    for rp, value in records:
        if rp.kind == FieldKind.NAME:
            data["name"] = value
        elif rp.kind == FieldKind.PHOTO:
            data["photo"] = value
        elif rp.kind == FieldKind.CONTACT:
            data["contacts"][rp.contact_type] = value
        elif rp.kind == FieldKind.SUPERVISOR:
            supervisors[rp.relation] = value
        elif rp.kind == FieldKind.TENURE:
            tenures.append(
                {"office_id": rp.office_id, "start": rp.start, "end": value}
            )

    if EntityType(entity_type) == EntityType.PERSON:
        return PersonFile(**data, tenures=tenures)
    return OfficeFile(**data, supervisors=supervisors)


def file_to_fields(model: EntityFile) -> list[tuple[str, Any]]:
    """Flatten a file model into ``(field, value)`` pairs."""
    fields: list[tuple[str, Any]] = []
    if model.name is not None:
        fields.append(("name", model.name))
    if model.photo is not None:
        fields.append(("photo", model.photo.model_dump(exclude_none=True)))
    for contact_type, value in model.contacts.items():
        fields.append((f"contact/{ContactType(contact_type).value}", value))
    if isinstance(model, PersonFile):
        for tenure in model.tenures:
            fields.append(
                (f"tenure/{tenure.office_id}/{tenure.start or ''}", tenure.end)
            )
    else:
        for relation, office_id in model.supervisors.items():
            fields.append(
                (f"supervisor/{SupervisingRelation(relation).value}", office_id)
            )
    return fields


# ---------------------------------------------------------------------------
# TOML text
# ---------------------------------------------------------------------------


def dumps_entity_file(model: EntityFile) -> str:
    """Serialise a file model to TOML text."""
    doc = tomlkit.document()
    if model.name is not None:
        doc["name"] = model.name

    if model.photo is not None:
        doc["photo"] = _photo_table(model.photo)

    if model.contacts:
        contacts = tomlkit.table()
        for contact_type in ContactType:
            if contact_type in model.contacts:
                contacts[contact_type.value] = model.contacts[contact_type]
        doc["contacts"] = contacts

    if isinstance(model, PersonFile):
        if model.tenures:
            tenures = tomlkit.aot()
            for tenure in model.tenures:
                tenures.append(_tenure_table(tenure))
            doc["tenures"] = tenures
    elif model.supervisors:
        supervisors = tomlkit.table()
        for relation in SupervisingRelation:
            if relation in model.supervisors:
                supervisors[relation.value] = model.supervisors[relation]
        doc["supervisors"] = supervisors

    return tomlkit.dumps(doc)


def loads_entity_file(
    entity_type: EntityType | str, text: str, source: str = "<string>"
) -> EntityFile:
    """Parse and validate TOML text of an entity file.

    Raises:
        ValidationError: If the text is not TOML or does not match the
            file schema.
    """
    try:
        data = tomlkit.parse(text).unwrap()
    except TOMLKitError as exc:
        raise ValidationError(f"invalid TOML: {exc}", path=source) from None

    try:
        return file_model(entity_type).model_validate(data)
    except pydantic.ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(problems, path=source) from None


def _photo_table(photo: Photo) -> Any:
    table = tomlkit.table()
    table["url"] = photo.url
    if photo.attribution is not None:
        table["attribution"] = photo.attribution
    return table


def _tenure_table(tenure: Tenure) -> Any:
    table = tomlkit.table()
    table["office_id"] = tenure.office_id
    if tenure.start is not None:
        table["start"] = tenure.start
    if tenure.end is not None:
        table["end"] = tenure.end
    return table
