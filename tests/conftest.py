"""Shared pytest fixtures for govdir tests."""

import subprocess
from pathlib import Path

import pytest
from dotenv import load_dotenv

from govdir.database import Database
from govdir.record.repo import RecordRepo

load_dotenv()


@pytest.fixture
def db():
    """A throwaway in-memory database."""
    database = Database()
    yield database
    database.close()


@pytest.fixture
def repo(db):
    """Record repo on the in-memory database, tracking enabled."""
    return RecordRepo(db)


@pytest.fixture
def data_dir(tmp_path) -> Path:
    """Empty external entity tree."""
    root = tmp_path / "data"
    (root / "person").mkdir(parents=True)
    (root / "office").mkdir()
    return root


@pytest.fixture
def write_entity(data_dir):
    """Factory writing ``{type}/{id}.toml`` below ``data_dir``."""

    def _write(entity_type: str, entity_id: str, text: str) -> Path:
        path = data_dir / entity_type / f"{entity_id}.toml"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def no_git(monkeypatch):
    """Make every git invocation behave as if git were not installed."""

    def _missing(*args, **kwargs):
        raise FileNotFoundError("git")

    monkeypatch.setattr("govdir.sync.git.subprocess.run", _missing)


@pytest.fixture
def fake_git(monkeypatch):
    """Scriptable git: map argument tuples to ``(returncode, stdout)``.

    Returns the dict of canned answers; unknown commands succeed with
    empty output.  Every call is recorded in ``answers.calls``.
    """

    class Answers(dict):
        calls: list

    answers = Answers()
    answers.calls = []

    def _run(cmd, cwd=None, capture_output=False, text=False, timeout=None):
        args = tuple(cmd[1:])
        answers.calls.append(args)
        returncode, stdout = answers.get(args, (0, ""))
        return subprocess.CompletedProcess(cmd, returncode, stdout, "")

    monkeypatch.setattr("govdir.sync.git.subprocess.run", _run)
    return answers


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Run in an empty cwd and HOME with no govdir environment variables."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in (
        "GOVDIR_CONFIG",
        "GOVDIR_DB",
        "GOVDIR_DATA_DIR",
        "GOVDIR_GIT_SAFETY",
        "GOVDIR_DEBUG",
        "GOVDIR_PERSON_ID_MAX_LENGTH",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    return tmp_path
