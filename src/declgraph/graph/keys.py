"""Key interning: canonical hierarchical node identifiers.

A key is an ordered sequence of ``(kind, id)`` pairs, e.g.
``("service", "frontend", "port", "http")``. A :class:`KeySet` hands out
exactly one :class:`Key` instance per pair sequence, so keys compare and
hash by identity. Keys from different sets never compare equal, which is
how the graph detects keys leaking in from another graph.

INVARIANT: a Key is immutable and lives as long as its KeySet.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from declgraph.graph.errors import InvalidKeyError

_SEP = "\x00"


@dataclass(frozen=True, eq=False)
class Key:
    """An interned ``(kind, id)`` pair path. Create via :meth:`KeySet.key`."""

    pairs: tuple[str, ...]
    keyset: KeySet = field(repr=False)

    @property
    def kind(self) -> str:
        """Kind of the last pair."""
        return self.pairs[-2]

    @property
    def id(self) -> str:
        """ID of the last pair."""
        return self.pairs[-1]

    @property
    def root(self) -> Key:
        """Key made of only the first pair, from the same set."""
        if len(self.pairs) == 2:
            return self
        return self.keyset.key(*self.pairs[:2])

    def less(self, other: Key) -> bool:
        """Lexicographic order over the pair sequence."""
        return self.pairs < other.pairs

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self.less(other)

    def __str__(self) -> str:
        # Kinds starting with "_" are internal namespacing, hidden from users.
        parts = [
            f"{kind}:{id_}"
            for kind, id_ in zip(self.pairs[::2], self.pairs[1::2], strict=True)
            if not kind.startswith("_")
        ]
        return "/".join(parts)

    def __repr__(self) -> str:
        return f"Key{self.pairs!r}"


class KeySet:
    """Interning table of keys. Each graph owns exactly one."""

    def __init__(self) -> None:
        self._keys: dict[str, Key] = {}

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, Key) and key.keyset is self

    def key(self, *pairs: str) -> Key:
        """Return the canonical key for *pairs*, creating it on first use.

        Raises:
            InvalidKeyError: *pairs* is empty, has odd length, or contains a
                non-string or a NUL character.
        """
        if not pairs or len(pairs) % 2:
            raise InvalidKeyError(
                f"key must have an even, positive number of elements, got {len(pairs)}",
                pairs,
            )
        for idx, item in enumerate(pairs):
            if not isinstance(item, str):
                raise InvalidKeyError(
                    f"key element #{idx} must be a string, got {type(item).__name__}", pairs
                )
            if _SEP in item:
                raise InvalidKeyError(f"key element #{idx} has a zero byte: {item!r}", pairs)

        encoded = _SEP.join(pairs)
        key = self._keys.get(encoded)
        if key is None:
            key = Key(pairs=tuple(pairs), keyset=self)
            self._keys[encoded] = key
        return key
