"""Path-keyed document mapping.

Modules:

- ``models`` -- enumerations and entity file models.
- ``paths``  -- path grammar (``parse_path``) and value schemas
  (``validate_value``).
- ``files``  -- conversion between field records and TOML entity files.
- ``repo``   -- ``RecordRepo``: the validated write path into the tree,
  projection and commit tracking.  Import it from ``govdir.record.repo``;
  it depends on ``govdir.database``, which in turn uses this package.
"""

from .models import (
    ContactType,
    EntityType,
    OfficeFile,
    PersonFile,
    Photo,
    SupervisingRelation,
    Tenure,
)
from .paths import FieldKind, RecordPath, make_path, parse_path, validate_value

__all__ = [
    "ContactType",
    "EntityType",
    "FieldKind",
    "OfficeFile",
    "PersonFile",
    "Photo",
    "RecordPath",
    "SupervisingRelation",
    "Tenure",
    "make_path",
    "parse_path",
    "validate_value",
]
