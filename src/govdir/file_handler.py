"""File handler module: encoding-aware reads and atomic writes.

Provides the file I/O used by import and export of the external entity
tree.  All functions are synchronous and touch only the paths given.
"""

import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# Path Validation
# =============================================================================


def validate_data_dir(path_str: str) -> Path:
    """Validate and resolve the external data directory.

    Args:
        path_str: Path to an existing directory.

    Returns:
        Resolved Path object.

    Raises:
        ValueError: If the path does not exist or is not a directory.
    """
    resolved = Path(path_str).expanduser().resolve()
    if not resolved.exists():
        raise ValueError(f"Data directory not found: {path_str}")
    if not resolved.is_dir():
        raise ValueError(f"Data path is not a directory: {path_str}")
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file, detecting its encoding when it is not UTF-8.

    Reads raw bytes first and decodes them as UTF-8 (with or without BOM).
    Files in another encoding are decoded with the charset-normalizer
    best guess.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8-sig"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, keep what UTF-8 can make of it
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    return (str(result), result.encoding)


def write_file_atomic(path: Path, content: str, encoding: str = "utf-8") -> int:
    """Write content through a temp file and ``os.replace``.

    Readers never observe a half-written file; parent directories are
    created as needed.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)

    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up temp file on any failure.
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)


def remove_file(path: Path) -> bool:
    """Delete *path* if it exists.

    Returns:
        ``True`` if a file was removed.
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
