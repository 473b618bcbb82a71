"""Merkle Search Tree over an ``ObjectStore``.

A Merkle Search Tree (MST) is an ordered search tree whose nodes are stored
content-addressed, so a root hash identifies the whole key/value set.

Shape
-----
Every key gets a *level*: the number of leading zero hex digits of the
BLAKE3 hash of the key (a fanout of 16).  A node holds the keys of exactly
one level, in ascending order, and the subtrees between those keys hold
keys of strictly lower levels::

    node(level=L) = left, (k1, v1, right1), (k2, v2, right2), ...

The root holds the keys of the highest level present.  Nodes without keys
are never stored except for the empty tree itself, so the shape is a pure
function of the key set: the same keys give the same root hash regardless
of insertion or deletion order.

Values are stored as separate blobs and referenced by hash, which makes
``diff`` a comparison of hashes only.

Copy-on-write
-------------
All operations take a root hash and return a new one.  Only the nodes on
the path to the changed key are rewritten; every other subtree is reused
by hash, and old roots stay valid.
"""

from __future__ import annotations

import logging
from bisect import bisect_left
from collections import OrderedDict, deque
from collections.abc import Iterator

from blake3 import blake3
from pydantic import BaseModel

from govdir.store.object_store import ObjectStore

logger = logging.getLogger(__name__)

_NODE = 0
_ENTRY = 1


def key_level(key: str) -> int:
    """Return the tree level of *key* (leading zero hex digits of its hash)."""
    digest = blake3(key.encode("utf-8")).hexdigest()
    return len(digest) - len(digest.lstrip("0"))


# ---------------------------------------------------------------------------
# Node model
# ---------------------------------------------------------------------------


class MstEntry(BaseModel):
    """A key, the hash of its value blob, and the subtree to its right."""

    key: str
    value: str
    right: str | None = None

    model_config = {"frozen": True}


class MstNode(BaseModel):
    """One stored node.

    Child *slots* are numbered ``0..len(entries)``: slot 0 is ``left`` and
    slot ``i`` is the ``right`` subtree of entry ``i - 1``.
    """

    level: int = 0
    left: str | None = None
    entries: tuple[MstEntry, ...] = ()

    model_config = {"frozen": True}

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> MstNode:
        return cls.model_validate_json(data)

    def keys(self) -> list[str]:
        return [e.key for e in self.entries]

    def locate(self, key: str) -> tuple[int, bool]:
        """Return ``(index, found)`` for *key*.

        When not found, ``index`` is also the child slot covering *key*.
        """
        keys = self.keys()
        i = bisect_left(keys, key)
        return i, i < len(keys) and keys[i] == key

    def child(self, slot: int) -> str | None:
        if slot == 0:
            return self.left
        return self.entries[slot - 1].right

    def with_child(self, slot: int, child: str | None) -> MstNode:
        if slot == 0:
            return self.model_copy(update={"left": child})
        entries = list(self.entries)
        entries[slot - 1] = entries[slot - 1].model_copy(
            update={"right": child}
        )
        return self.model_copy(update={"entries": tuple(entries)})


EMPTY_NODE = MstNode()

# Decoded nodes kept per tree; older versions fall out first.
NODE_CACHE_SIZE = 1024


class MstStats(BaseModel):
    """Size figures for one tree version."""

    entries: int = 0
    nodes: int = 0
    depth: int = 0
    node_bytes: int = 0

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Tree operations
# ---------------------------------------------------------------------------


class MerkleSearchTree:
    """Persistent MST operations bound to an object store.

    Internally a subtree is addressed by its node hash, with ``None`` for
    the empty subtree.  Public methods take and return root hashes, where
    the empty tree is the hash of ``EMPTY_NODE``.

    Args:
        store: Where nodes and value blobs are kept.
        cache_size: Maximum number of decoded nodes held in memory.
    """

    def __init__(
        self, store: ObjectStore, cache_size: int = NODE_CACHE_SIZE
    ) -> None:
        self.store = store
        self.cache_size = cache_size
        self._nodes: OrderedDict[str, MstNode] = OrderedDict()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def empty_root(self) -> str:
        return self._write(EMPTY_NODE)

    def get(self, root: str, key: str) -> bytes | None:
        """Return the value stored under *key*, or ``None`` when unset."""
        value_hash = self.get_hash(root, key)
        if value_hash is None:
            return None
        return self.store.get(value_hash)

    def get_hash(self, root: str, key: str) -> str | None:
        sub = self._tree(root)
        while sub is not None:
            node = self._load(sub)
            i, found = node.locate(key)
            if found:
                return node.entries[i].value
            sub = node.child(i)
        return None

    def set(self, root: str, key: str, value: bytes) -> str:
        """Return the root of a tree where *key* maps to *value*."""
        value_hash = self.store.put(value)
        new = self._insert(self._tree(root), key, key_level(key), value_hash)
        return new

    def delete(self, root: str, key: str) -> str:
        """Return the root of a tree without *key*.

        Returns *root* unchanged when *key* is absent.
        """
        sub = self._tree(root)
        new = self._delete(sub, key)
        if new == sub:
            return root
        if new is None:
            return self.empty_root()
        return new

    def list(self, root: str, prefix: str = "") -> Iterator[tuple[str, bytes]]:
        """Yield ``(key, value)`` for keys starting with *prefix*, in order.

        The iterator is lazy and walks the stored nodes on every call;
        subtrees entirely before the prefix range are never loaded and the
        walk stops at the first key past it.
        """
        for key, value_hash in self._walk(self._tree(root), prefix):
            if key.startswith(prefix):
                yield key, self.store.get(value_hash)
            elif key > prefix:
                return

    def keys(self, root: str, prefix: str = "") -> Iterator[str]:
        for key, _ in self._walk(self._tree(root), prefix):
            if key.startswith(prefix):
                yield key
            elif key > prefix:
                return

    def diff(self, root_a: str, root_b: str) -> set[str]:
        """Return the keys whose value differs between two trees.

        Added and removed keys are included.  Both trees are walked as
        ordered streams of subtrees and entries; whenever the heads of both
        streams are the same subtree hash, that whole subtree is skipped
        without being loaded.
        """
        changed: set[str] = set()
        if root_a == root_b:
            return changed

        a: deque = deque()
        b: deque = deque()
        tree_a, tree_b = self._tree(root_a), self._tree(root_b)
        if tree_a is not None:
            a.append((_NODE, tree_a))
        if tree_b is not None:
            b.append((_NODE, tree_b))

        while a and b:
            head_a, head_b = a[0], b[0]
            if head_a[0] == _NODE and head_b[0] == _NODE:
                if head_a[1] == head_b[1]:
                    a.popleft()
                    b.popleft()
                    continue
                level_a = self._load(head_a[1]).level
                level_b = self._load(head_b[1]).level
                if level_a >= level_b:
                    self._expand(a)
                if level_b >= level_a:
                    self._expand(b)
                continue
            if head_a[0] == _NODE:
                self._expand(a)
                continue
            if head_b[0] == _NODE:
                self._expand(b)
                continue

            key_a, key_b = head_a[1], head_b[1]
            if key_a == key_b:
                if head_a[2] != head_b[2]:
                    changed.add(key_a)
                a.popleft()
                b.popleft()
            elif key_a < key_b:
                changed.add(key_a)
                a.popleft()
            else:
                changed.add(key_b)
                b.popleft()

        for stream in (a, b):
            while stream:
                if stream[0][0] == _NODE:
                    self._expand(stream)
                else:
                    changed.add(stream.popleft()[1])

        logger.debug(
            "diff %s..%s: %d keys", root_a[:12], root_b[:12], len(changed)
        )
        return changed

    def count(self, root: str) -> int:
        return sum(1 for _ in self._walk(self._tree(root), ""))

    def stats(self, root: str) -> MstStats:
        entries = nodes = depth = node_bytes = 0
        pending = [(self._tree(root), 1)]
        while pending:
            sub, d = pending.pop()
            if sub is None:
                continue
            node = self._load(sub)
            nodes += 1
            node_bytes += len(node.to_bytes())
            entries += len(node.entries)
            depth = max(depth, d)
            for slot in range(len(node.entries) + 1):
                pending.append((node.child(slot), d + 1))
        return MstStats(
            entries=entries, nodes=nodes, depth=depth, node_bytes=node_bytes
        )

    # ------------------------------------------------------------------
    # Node I/O
    # ------------------------------------------------------------------

    def _load(self, node_hash: str) -> MstNode:
        node = self._nodes.get(node_hash)
        if node is None:
            node = MstNode.from_bytes(self.store.get(node_hash))
        self._remember(node_hash, node)
        return node

    def _write(self, node: MstNode) -> str:
        node_hash = self.store.put(node.to_bytes())
        self._remember(node_hash, node)
        return node_hash

    def _remember(self, node_hash: str, node: MstNode) -> None:
        """Least-recently-used node cache."""
        self._nodes[node_hash] = node
        self._nodes.move_to_end(node_hash)
        while len(self._nodes) > self.cache_size:
            self._nodes.popitem(last=False)

    def _tree(self, root: str) -> str | None:
        """Map a public root hash to the internal subtree handle."""
        node = self._load(root)
        if not node.entries:
            return None
        return root

    # ------------------------------------------------------------------
    # Recursive helpers
    # ------------------------------------------------------------------

    def _insert(
        self, sub: str | None, key: str, level: int, value_hash: str
    ) -> str:
        if sub is None:
            return self._write(
                MstNode(
                    level=level,
                    entries=(MstEntry(key=key, value=value_hash),),
                )
            )

        node = self._load(sub)
        if level > node.level:
            lt, gt = self._split(sub, key)
            return self._write(
                MstNode(
                    level=level,
                    left=lt,
                    entries=(MstEntry(key=key, value=value_hash, right=gt),),
                )
            )

        i, found = node.locate(key)
        if level == node.level:
            entries = list(node.entries)
            if found:
                if entries[i].value == value_hash:
                    return sub
                entries[i] = entries[i].model_copy(
                    update={"value": value_hash}
                )
                return self._write(
                    node.model_copy(update={"entries": tuple(entries)})
                )
            lt, gt = self._split(node.child(i), key)
            node = node.with_child(i, lt)
            entries = list(node.entries)
            entries.insert(i, MstEntry(key=key, value=value_hash, right=gt))
            return self._write(
                node.model_copy(update={"entries": tuple(entries)})
            )

        child = node.child(i)
        new_child = self._insert(child, key, level, value_hash)
        if new_child == child:
            return sub
        return self._write(node.with_child(i, new_child))

    def _split(
        self, sub: str | None, key: str
    ) -> tuple[str | None, str | None]:
        """Split a subtree into the parts below and above *key*."""
        if sub is None:
            return None, None

        node = self._load(sub)
        i, _ = node.locate(key)
        lt_child, gt_child = self._split(node.child(i), key)

        if i == 0:
            lt = lt_child
        else:
            lt = self._write(
                MstNode(
                    level=node.level,
                    left=node.left,
                    entries=node.entries[:i],
                ).with_child(i, lt_child)
            )

        if i == len(node.entries):
            gt = gt_child
        else:
            gt = self._write(
                MstNode(
                    level=node.level,
                    left=gt_child,
                    entries=node.entries[i:],
                )
            )
        return lt, gt

    def _delete(self, sub: str | None, key: str) -> str | None:
        if sub is None:
            return None

        node = self._load(sub)
        i, found = node.locate(key)
        if not found:
            child = node.child(i)
            new_child = self._delete(child, key)
            if new_child == child:
                return sub
            return self._write(node.with_child(i, new_child))

        merged = self._merge(node.child(i), node.entries[i].right)
        entries = node.entries[:i] + node.entries[i + 1 :]
        if not entries:
            return merged
        return self._write(
            MstNode(
                level=node.level, left=node.left, entries=entries
            ).with_child(i, merged)
        )

    def _merge(self, a: str | None, b: str | None) -> str | None:
        """Join two subtrees where every key of *a* precedes every key of *b*."""
        if a is None:
            return b
        if b is None:
            return a

        node_a, node_b = self._load(a), self._load(b)
        last = len(node_a.entries)
        if node_a.level > node_b.level:
            return self._write(
                node_a.with_child(last, self._merge(node_a.child(last), b))
            )
        if node_b.level > node_a.level:
            return self._write(
                node_b.with_child(0, self._merge(a, node_b.left))
            )

        middle = self._merge(node_a.child(last), node_b.left)
        joined = node_a.with_child(last, middle)
        return self._write(
            MstNode(
                level=node_a.level,
                left=node_a.left,
                entries=joined.entries + node_b.entries,
            )
        )

    def _walk(
        self, sub: str | None, prefix: str
    ) -> Iterator[tuple[str, str]]:
        """In-order ``(key, value_hash)``, skipping subtrees below *prefix*."""
        if sub is None:
            return
        node = self._load(sub)
        for i, entry in enumerate(node.entries):
            if entry.key > prefix:
                yield from self._walk(node.child(i), prefix)
            yield entry.key, entry.value
        yield from self._walk(node.child(len(node.entries)), prefix)

    def _expand(self, stream: deque) -> None:
        """Replace the subtree at the head of *stream* by its contents."""
        _, node_hash = stream.popleft()
        node = self._load(node_hash)
        items: list[tuple] = []
        for i, entry in enumerate(node.entries):
            child = node.child(i)
            if child is not None:
                items.append((_NODE, child))
            items.append((_ENTRY, entry.key, entry.value))
        last = node.child(len(node.entries))
        if last is not None:
            items.append((_NODE, last))
        stream.extendleft(reversed(items))
