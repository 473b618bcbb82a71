"""Runtime configuration for the govdir command.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GOVDIR_DB: SQLite database file (default: .govdir/govdir.db)
    GOVDIR_DATA_DIR: External entity tree (default: data)
    GOVDIR_GIT_SAFETY: none | warn | block (default: block)
    GOVDIR_DEBUG: Enable debug logging (default: false)
    GOVDIR_PERSON_ID_MAX_LENGTH: Reject writes to longer person ids
"""

import logging
import os
from dataclasses import dataclass

import pydantic
import yaml
from dotenv import load_dotenv

from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import build_config, to_fallbacks

logger = logging.getLogger(__name__)

DEFAULT_DB = ".govdir/govdir.db"
DEFAULT_DATA_DIR = "data"
GIT_SAFETY_MODES = ("none", "warn", "block")
LOG_FORMATS = ("text", "json")


@dataclass
class Config:
    db_path: str = DEFAULT_DB
    data_dir: str = DEFAULT_DATA_DIR
    ref: str = "working"
    git_safety: str = "block"
    debug: bool = False
    person_id_max_length: int | None = None
    log_level: str = "WARNING"
    log_file: str | None = None
    log_format: str = "text"


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If a value is out of range or of the wrong kind.
    """
    config.db_path = config.db_path.strip()
    if not config.db_path:
        raise ValueError(
            "Database path cannot be empty. Set GOVDIR_DB or pass --db."
        )

    if not config.ref or "/" in config.ref:
        raise ValueError(f"Invalid ref name '{config.ref}'")

    if config.git_safety not in GIT_SAFETY_MODES:
        raise ValueError(
            f"Invalid git_safety '{config.git_safety}': "
            f"must be one of {', '.join(GIT_SAFETY_MODES)}"
        )

    if config.log_format not in LOG_FORMATS:
        raise ValueError(
            f"Invalid log format '{config.log_format}': must be text or json"
        )

    if config.person_id_max_length is not None and config.person_id_max_length < 1:
        raise ValueError(
            f"Invalid person_id_max_length {config.person_id_max_length}: "
            "must be a positive number"
        )

    if config.git_safety == "none":
        logger.info(
            "git_safety=none: export will overwrite uncommitted edits in %s",
            config.data_dir,
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    db: str | None = None,
    data_dir: str | None = None,
    git_safety: str | None = None,
    debug: bool = False,
    log_file: str | None = None,
    log_format: str | None = None,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        db: Override database path.
        data_dir: Override data directory.
        git_safety: Override git safety mode.
        debug: Enable debug logging (CLI flag).
        log_file: Log file path (CLI flag).
        log_format: ``text`` or ``json`` (CLI flag).
        yaml_fallbacks: Flat dict from ``config_schema.to_fallbacks``.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value from any source is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_db = db or os.getenv("GOVDIR_DB") or fb.get("db") or DEFAULT_DB
    final_data_dir = (
        data_dir
        or os.getenv("GOVDIR_DATA_DIR")
        or fb.get("data_dir")
        or DEFAULT_DATA_DIR
    )
    final_git_safety = (
        git_safety
        or os.getenv("GOVDIR_GIT_SAFETY")
        or fb.get("git_safety")
        or "block"
    ).strip().lower()

    # --- Boolean fields: CLI > env > default ---

    if debug:
        final_debug = True
    else:
        final_debug = bool(_get_bool_env("GOVDIR_DEBUG"))

    # --- Numeric fields: env > YAML > default ---

    max_len_raw = os.getenv("GOVDIR_PERSON_ID_MAX_LENGTH")
    if max_len_raw is not None and max_len_raw.strip():
        try:
            final_max_len = int(max_len_raw)
        except ValueError:
            raise ValueError(
                f"Invalid GOVDIR_PERSON_ID_MAX_LENGTH '{max_len_raw}': must be a number"
            ) from None
    else:
        final_max_len = fb.get("person_id_max_length")

    config = Config(
        db_path=final_db,
        data_dir=final_data_dir,
        ref=fb.get("ref", "working"),
        git_safety=final_git_safety,
        debug=final_debug,
        person_id_max_length=final_max_len,
        log_level=fb.get("log_level", "WARNING"),
        log_file=log_file or fb.get("log_file"),
        log_format=log_format or fb.get("log_format", "text"),
    )

    validate_config(config)

    return config


def resolve_config(overrides: dict | None = None) -> Config:
    """Gather every configuration source and build the ``Config``.

    Loads ``.env`` first so ``${VAR}`` interpolation in YAML files can use
    its values, then the discovered YAML files, then applies *overrides*
    (CLI values keyed like the ``load_config`` arguments).

    Raises:
        ValueError: If any source holds an invalid value.
    """
    load_dotenv()

    yaml_fallbacks = None
    config_files = discover_config_files()
    if config_files:
        try:
            unified = build_config(load_hierarchical_config())
        except (pydantic.ValidationError, yaml.YAMLError, OSError, TypeError) as exc:
            raise ValueError(f"Invalid config file {config_files[0]}: {exc}") from exc
        yaml_fallbacks = to_fallbacks(unified)
        logger.debug("Configuration file: %s", config_files[0])

    return load_config(yaml_fallbacks=yaml_fallbacks, **(overrides or {}))
