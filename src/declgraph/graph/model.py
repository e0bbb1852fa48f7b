"""Node and edge model.

A node enters the graph the first time it is referenced, either by an edge
endpoint or by ``add_node``. Until ``add_node`` is called on it the node is
*predeclared*: it has a key and edges, but no props, trace or index.

Edges are immutable. Each node keeps its incoming and outgoing edges in the
order they were declared.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from declgraph.graph.errors import InvalidPropertyKeyError
from declgraph.graph.keys import Key

if TYPE_CHECKING:
    from declgraph.graph.engine import Graph


def freeze_value(value: Any) -> Any:
    """Recursively convert mutable containers into immutable equivalents.

    Nested mappings become read-only ``FrozenMap``s; their keys may be of any
    hashable type. Only the top-level ``Props`` requires string keys.
    """
    if isinstance(value, Props | FrozenMap):
        return value
    if isinstance(value, Mapping):
        return FrozenMap(value)
    if isinstance(value, list | tuple):
        return tuple(freeze_value(v) for v in value)
    if isinstance(value, set | frozenset):
        return frozenset(freeze_value(v) for v in value)
    return value


def same_value(a: Any, b: Any) -> bool:
    """Structural equality that keeps ``bool`` distinct from numbers.

    ``1 == True`` holds in Python, but a flag and a count are different
    property values.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if len(a) != len(b):
            return False
        return all(
            any(same_value(k, o) and same_value(v, w) for o, w in b.items()) for k, v in a.items()
        )
    if isinstance(a, tuple | list) and isinstance(b, tuple | list):
        return len(a) == len(b) and all(same_value(x, y) for x, y in zip(a, b, strict=True))
    if isinstance(a, frozenset | set) and isinstance(b, frozenset | set):
        return len(a) == len(b) and all(any(same_value(x, y) for y in b) for x in a)
    return bool(a == b)


class FrozenMap(Mapping[Any, Any]):
    """Read-only mapping used for dicts nested inside property values."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[Any, Any]) -> None:
        object.__setattr__(self, "_data", {k: freeze_value(v) for k, v in data.items()})

    def __getitem__(self, key: Any) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("props are immutable")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return same_value(self, other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"FrozenMap({self._data!r})"

    def to_dict(self) -> dict[Any, Any]:
        return {k: _thaw(v) for k, v in self._data.items()}


class Props(Mapping[str, Any]):
    """Immutable, insertion-ordered, string-keyed property bag.

    Values are frozen deeply on construction, so mutating the dict that was
    passed in does not affect the stored props. Equality is structural.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[Any, Any] | None = None) -> None:
        frozen: dict[str, Any] = {}
        for k, v in (data or {}).items():
            if not isinstance(k, str):
                raise InvalidPropertyKeyError(k)
            frozen[k] = freeze_value(v)
        object.__setattr__(self, "_data", frozen)

    def __getitem__(self, name: str) -> Any:
        return self._data[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("props are immutable")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return same_value(self, other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self._data.items())
        return f"props({inner})"

    def to_dict(self) -> dict[str, Any]:
        """Return a plain (mutable, deep) copy."""
        return {k: _thaw(v) for k, v in self._data.items()}


def _thaw(value: Any) -> Any:
    if isinstance(value, Props | FrozenMap):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    if isinstance(value, frozenset):
        return sorted((_thaw(v) for v in value), key=repr)
    return value


@dataclass(frozen=True, eq=False)
class Edge:
    """A directed, optionally titled relation between two nodes."""

    parent: Node
    child: Node
    title: str = ""
    trace: object | None = field(default=None, repr=False)

    def __str__(self) -> str:
        rel = f' "{self.title}"' if self.title else ""
        return f"{self.parent} ->{rel} {self.child}"


@dataclass(eq=False)
class Node:
    """A declared or predeclared entity of a graph."""

    key: Key
    props: Props | None = None
    idempotent: bool = False
    index: int = -1
    trace: object | None = field(default=None, repr=False)
    _declared: bool = field(default=False, repr=False)
    _children: list[Edge] = field(default_factory=list, repr=False)
    _parents: list[Edge] = field(default_factory=list, repr=False)

    def __str__(self) -> str:
        return str(self.key)

    @property
    def declared(self) -> bool:
        """True once ``add_node`` has set props and trace."""
        return self._declared

    def declare(self, index: int, props: Props, idempotent: bool, trace: object | None) -> None:
        self.index = index
        self.props = props
        self.idempotent = idempotent
        self.trace = trace
        self._declared = True

    def belongs_to(self, graph: Graph) -> bool:
        return self.key in graph.keyset

    def list_children(self) -> list[Node]:
        """Children in edge-declaration order, as a fresh list."""
        return [e.child for e in self._children]

    def list_parents(self) -> list[Node]:
        """Parents in edge-declaration order, as a fresh list."""
        return [e.parent for e in self._parents]

    def child_edges(self) -> list[Edge]:
        return list(self._children)

    def parent_edges(self) -> list[Edge]:
        return list(self._parents)

    def visit_descendants(self, callback: Callable[[Node, list[Edge]], None]) -> None:
        """Walk this node and all its descendants depth-first.

        *callback* receives each node and the edges leading to it from this
        node. It aborts the walk by raising. Nodes reachable through several
        paths are visited once.
        """
        seen: set[Node] = {self}
        stack: list[tuple[Node, list[Edge]]] = [(self, [])]
        while stack:
            node, path = stack.pop()
            callback(node, path)
            for edge in reversed(node._children):
                if edge.child not in seen:
                    seen.add(edge.child)
                    stack.append((edge.child, [*path, edge]))
