"""
Input validation helpers for govdir records.

Each validator returns ``(is_valid, error_message)`` so callers can decide
whether to raise, collect, or report.  ``govdir.record.paths`` turns failures
into ``ValidationError`` before any store mutation happens.
"""

import re
import unicodedata
from datetime import date
from urllib.parse import urlparse

PERSON_ID_LENGTH = 8

_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Entity id")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_entity_id(
    entity_id: str, max_length: int | None = None
) -> tuple[bool, str]:
    """
    Validate an entity id path segment.

    Args:
        entity_id: The id to validate
        max_length: Optional maximum number of characters

    Returns:
        Tuple of (is_valid, error_message).

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot contain '/' or surrounding whitespace
        - Cannot exceed max_length characters when given
    """
    if not entity_id or not entity_id.strip():
        return False, format_validation_error("Entity id", "cannot be empty")

    if "/" in entity_id:
        return False, format_validation_error(
            "Entity id", "cannot contain '/'"
        )

    if entity_id != entity_id.strip():
        return False, format_validation_error(
            "Entity id", "cannot have leading or trailing whitespace"
        )

    if max_length is not None and len(entity_id) > max_length:
        return False, format_validation_error(
            "Entity id", f"'{entity_id}' exceeds {max_length} characters"
        )

    return True, ""


def validate_text(
    value: object, field_name: str, max_length: int | None = None
) -> tuple[bool, str]:
    """
    Validate a non-empty string value.

    Args:
        value: The decoded JSON value
        field_name: Human-readable field name used in the message
        max_length: Optional maximum number of characters

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not isinstance(value, str):
        return False, format_validation_error(
            field_name, f"must be a string, got {type(value).__name__}"
        )

    if not value.strip():
        return False, format_validation_error(field_name, "cannot be empty")

    if max_length is not None and len(value) > max_length:
        return False, format_validation_error(
            field_name, f"exceeds {max_length} characters"
        )

    return True, ""


def validate_iso_date(value: str, field_name: str) -> tuple[bool, str]:
    """
    Validate a calendar date in ``YYYY-MM-DD`` form.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not _ISO_DATE_PATTERN.match(value):
        return False, format_validation_error(
            field_name, f"'{value}' is not an ISO date (YYYY-MM-DD)"
        )

    try:
        date.fromisoformat(value)
    except ValueError:
        return False, format_validation_error(
            field_name, f"'{value}' is not a valid calendar date"
        )

    return True, ""


def validate_url(url: str) -> tuple[bool, str]:
    """
    Validate an absolute http(s) URL.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not url.startswith(("http://", "https://")):
        return False, format_validation_error(
            "Photo url", f"'{url}' must start with http:// or https://"
        )

    if not urlparse(url).hostname:
        return False, format_validation_error(
            "Photo url", f"'{url}' must include a hostname"
        )

    return True, ""


def derive_person_id(name: str) -> str:
    """
    Build a short person id from a full name.

    The id is the ASCII-folded, lower-cased first name truncated so that
    the initials of the remaining names still fit in
    ``PERSON_ID_LENGTH`` characters.  "Narendra Damodardas Modi" becomes
    ``narenddm``.

    Args:
        name: Full display name

    Returns:
        Id of at most ``PERSON_ID_LENGTH`` characters.

    Raises:
        ValueError: If the name contains no letters or digits.
    """
    folded = (
        unicodedata.normalize("NFKD", name)
        .encode("ascii", "ignore")
        .decode("ascii")
        .lower()
    )
    words = [re.sub(r"[^a-z0-9]", "", w) for w in folded.split()]
    words = [w for w in words if w]
    if not words:
        raise ValueError(f"Cannot derive an id from name '{name}'")

    initials = "".join(w[0] for w in words[1:])[: PERSON_ID_LENGTH - 1]
    first = words[0][: PERSON_ID_LENGTH - len(initials)]
    return first + initials
