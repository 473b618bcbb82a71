"""govdir: a directory of government people and offices.

The canonical state lives in a Merkle Search Tree stored in SQLite and is
edited through slash-delimited paths such as ``person/{id}/name``.  A
relational projection of the same content backs search and queries, and
per-entity commit tracking decides what must be exported back to the
git-versioned TOML file tree.
"""

__version__ = "0.1.0"
