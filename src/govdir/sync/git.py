"""Queries against the git work tree holding the external entity files.

Every helper shells out to ``git`` with a short timeout.  A missing git
binary, a timeout or a directory outside any work tree all read as "no git
information" rather than as errors.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 10


def _git(root: Path, *args: str) -> subprocess.CompletedProcess | None:
    try:
        return subprocess.run(
            ["git", *args],
            cwd=str(root),
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError) as exc:
        logger.debug("git %s failed in %s: %s", args[0], root, exc)
        return None


def is_work_tree(root: Path) -> bool:
    """Whether *root* lies inside a git work tree."""
    result = _git(root, "rev-parse", "--is-inside-work-tree")
    return (
        result is not None
        and result.returncode == 0
        and result.stdout.strip() == "true"
    )


def has_uncommitted_changes(root: Path, rel_path: str | None = None) -> bool:
    """Whether ``git status --porcelain`` reports anything.

    Args:
        root: Work tree directory.
        rel_path: Restrict the check to one path below *root*.

    Returns:
        ``True`` if there are modified, staged or untracked files.  ``False``
        when git is unavailable.
    """
    args = ["status", "--porcelain"]
    if rel_path is not None:
        args += ["--", rel_path]
    result = _git(root, *args)
    if result is None or result.returncode != 0:
        return False
    return bool(result.stdout.strip())


def last_commit_date(root: Path, rel_path: str) -> str | None:
    """Date (``YYYY-MM-DD``) of the last commit touching *rel_path*.

    Returns:
        The date, or ``None`` when the file was never committed or git is
        unavailable.
    """
    result = _git(
        root, "log", "-1", "--format=%ad", "--date=short", "--", rel_path
    )
    if result is None or result.returncode != 0:
        return None
    return result.stdout.strip() or None
