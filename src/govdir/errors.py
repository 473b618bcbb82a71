"""Error taxonomy shared by every govdir layer.

Each error carries an ``error_type`` category and a ``corrective_action``
so the CLI can print a structured message telling the user what to do
next, without having to know which layer raised it.
"""

from __future__ import annotations


class GovdirError(Exception):
    """Base class for all govdir errors."""

    error_type = "server_error"
    corrective_action = "Re-run with --debug and inspect the log output."

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(GovdirError):
    """A hash or ref is absent from the object store."""

    error_type = "not_found"
    corrective_action = (
        "The store may be corrupt or uninitialised; run 'govdir init' "
        "or 'govdir reindex'."
    )


class NoSuchRef(NotFound):
    """A ref name was never set."""

    corrective_action = "Run 'govdir init' to create the working ref."

    def __init__(self, name: str) -> None:
        super().__init__(f"ref '{name}' has never been set")
        self.name = name


class ValidationError(GovdirError):
    """A path or value does not satisfy the record schema."""

    error_type = "validation_error"
    corrective_action = (
        "Check the path grammar and value shape for this field kind."
    )

    def __init__(self, message: str, path: str | None = None) -> None:
        if path:
            message = f"{path}: {message}"
        super().__init__(message)
        self.path = path


class ConflictError(GovdirError):
    """Two stores define the same (type, id) entity."""

    error_type = "conflict"
    corrective_action = (
        "Rename or remove the colliding entities in one store, then "
        "retry the merge."
    )

    def __init__(self, collisions: list[tuple[str, str]]) -> None:
        listed = ", ".join(f"{t}/{i}" for t, i in collisions)
        super().__init__(
            f"{len(collisions)} entities exist in both stores: {listed}"
        )
        self.collisions = collisions


class PreconditionFailed(GovdirError):
    """An operation's precondition does not hold (e.g. dirty git tree)."""

    error_type = "precondition_failed"
    corrective_action = (
        "Commit or stash the changes in the data directory, then retry."
    )


def format_error(error: GovdirError) -> str:
    """Format an error with its corrective action for terminal output.

    Args:
        error: Any govdir error.

    Returns:
        Two-part message: ``Error (<type>): <message>`` and ``Action: ...``.
    """
    return (
        f"Error ({error.error_type}): {error.message}\n\n"
        f"Action: {error.corrective_action}"
    )
