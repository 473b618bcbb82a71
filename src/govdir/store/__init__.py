"""Content-addressed storage: the object store and the Merkle Search Tree."""

from .mst import MerkleSearchTree, MstNode, key_level
from .object_store import (
    MemoryObjectStore,
    ObjectStore,
    SqliteObjectStore,
    hash_blob,
)

__all__ = [
    "MemoryObjectStore",
    "MerkleSearchTree",
    "MstNode",
    "ObjectStore",
    "SqliteObjectStore",
    "hash_blob",
    "key_level",
]
