"""Error taxonomy for graph construction and queries.

Every error carries a stable ``code`` and converts to a
:class:`~declgraph.services.result.ServiceError` so adapters can report it
without knowing the concrete class. Errors tied to a declaration site also
render a ``backtrace()``: the captured provenance trace followed by the
error text.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from declgraph.services.result import ServiceError

if TYPE_CHECKING:
    from declgraph.graph.keys import Key
    from declgraph.graph.model import Edge, Node


def format_backtrace(err: BaseException, trace: object | None) -> str:
    """Return the error message prefixed by the trace it happened at."""
    prefix = str(trace) if trace is not None else ""
    return f"{prefix}Error: {err}"


class GraphError(Exception):
    """Base class for all graph errors."""

    code: ClassVar[str] = "GRAPH_ERROR"

    def detail(self) -> dict[str, Any]:
        """Structured context for diagnostics."""
        return {}

    def to_service_error(self) -> ServiceError:
        return ServiceError(code=self.code, message=str(self), detail=self.detail())


class TracedGraphError(GraphError):
    """A graph error that can point at a declaration site."""

    @property
    def trace(self) -> object | None:
        return None

    def backtrace(self) -> str:
        return format_backtrace(self, self.trace)

    def to_service_error(self) -> ServiceError:
        detail = self.detail()
        if self.trace is not None:
            detail["backtrace"] = self.backtrace()
        return ServiceError(code=self.code, message=str(self), detail=detail)


class FinalizedError(GraphError):
    """Mutation attempted on a finalized graph."""

    code = "FINALIZED"

    def __init__(self) -> None:
        super().__init__("cannot modify a finalized graph")


class NotFinalizedError(GraphError):
    """Query attempted on a graph still under construction."""

    code = "NOT_FINALIZED"

    def __init__(self) -> None:
        super().__init__("cannot query a graph under construction")


class InvalidKeyError(GraphError):
    """Malformed key pairs: empty, odd length, non-string or NUL-containing."""

    code = "INVALID_KEY"

    def __init__(self, message: str, pairs: Sequence[object] = ()) -> None:
        super().__init__(message)
        self.pairs = tuple(pairs)

    def detail(self) -> dict[str, Any]:
        return {"pairs": [repr(p) for p in self.pairs]}


class ForeignKeyError(GraphError):
    """A key argument was interned by another graph."""

    code = "FOREIGN_KEY"

    def __init__(self, argument: str, key: Key) -> None:
        super().__init__(f"bad {argument}: {key} is from another graph")
        self.argument = argument
        self.key = key

    def detail(self) -> dict[str, Any]:
        return {"argument": self.argument, "key": str(self.key)}


class ForeignNodeError(GraphError):
    """A value passed as a node is not a node of this graph."""

    code = "FOREIGN_NODE"

    def __init__(self, node: object, message: str | None = None) -> None:
        super().__init__(message or f"bad node {node} - from another graph")
        self.node = node

    def detail(self) -> dict[str, Any]:
        return {"node": str(self.node)}


class InvalidPropertyKeyError(GraphError):
    """A property bag has a non-string key."""

    code = "INVALID_PROPERTY_KEY"

    def __init__(self, prop_key: object) -> None:
        super().__init__(f"non-string key {prop_key!r} in 'props'")
        self.prop_key = prop_key

    def detail(self) -> dict[str, Any]:
        return {"prop_key": repr(self.prop_key), "type": type(self.prop_key).__name__}


class NodeRedeclarationError(TracedGraphError):
    """A node was declared twice without idempotent, equal declarations."""

    code = "NODE_REDECLARATION"

    def __init__(self, trace: object | None, previous: Node) -> None:
        super().__init__(f"{previous} is redeclared, previous declaration:\n{previous.trace}")
        self._trace = trace
        self.previous = previous

    @property
    def trace(self) -> object | None:
        return self._trace

    def detail(self) -> dict[str, Any]:
        return {"key": str(self.previous.key), "previous_index": self.previous.index}


class CycleError(TracedGraphError):
    """Adding an edge would close a cycle.

    The endpoints may be only predeclared (no props or trace yet), but they
    always have valid keys. ``path`` holds the existing edges leading from
    the new edge's child back to its parent.
    """

    code = "CYCLE"

    def __init__(self, trace: object | None, edge: Edge, path: Sequence[Edge]) -> None:
        super().__init__(
            f'relation "{edge.title}" between {edge.parent} and {edge.child} introduces a cycle'
        )
        self._trace = trace
        self.edge = edge
        self.path = list(path)

    @property
    def trace(self) -> object | None:
        return self._trace

    def detail(self) -> dict[str, Any]:
        return {
            "edge": str(self.edge),
            "path": [str(e) for e in self.path],
        }


class DanglingEdgeError(TracedGraphError):
    """An edge refers to a node that was never declared (found by finalize)."""

    code = "DANGLING_EDGE"

    def __init__(self, edge: Edge) -> None:
        self.edge = edge
        super().__init__(self._message())

    def _message(self) -> str:
        e = self.edge
        rel = f' in "{e.title}"' if e.title else ""
        has_p = e.parent.declared
        has_c = e.child.declared
        if has_p and has_c:
            return "incorrect DanglingEdgeError, the edge is fully connected"
        if has_c:
            return f"{e.child}{rel} refers to undefined {e.parent}"
        if has_p:
            return f"{e.parent}{rel} refers to undefined {e.child}"
        return f'relation "{e.title}": refers to {e.parent} and {e.child}, neither is defined'

    @property
    def trace(self) -> object | None:
        return self.edge.trace

    @property
    def undeclared(self) -> list[Node]:
        """The endpoints of the edge that are still predeclared."""
        return [n for n in (self.edge.parent, self.edge.child) if not n.declared]

    def detail(self) -> dict[str, Any]:
        return {
            "edge": str(self.edge),
            "undeclared": [str(n) for n in self.undeclared],
        }


class InvalidOrderError(GraphError):
    code = "INVALID_ORDER"

    def __init__(self, value: object, allowed: Sequence[str]) -> None:
        expected = ", ".join(f'"{a}"' for a in allowed)
        super().__init__(f'unknown order "{value}", expecting one of {expected}')
        self.value = value

    def detail(self) -> dict[str, Any]:
        return {"value": str(self.value)}


class InvalidTopologyError(GraphError):
    code = "INVALID_TOPOLOGY"

    def __init__(self, value: object) -> None:
        super().__init__(f'unknown topology "{value}", expecting either "breadth" or "depth"')
        self.value = value

    def detail(self) -> dict[str, Any]:
        return {"value": str(self.value)}


class VisitorContractError(GraphError):
    """A traversal callback returned something other than a subset of children."""

    code = "VISITOR_CONTRACT_VIOLATION"

    def __init__(self, node: Node, value: object, message: str | None = None) -> None:
        super().__init__(
            message or f"the callback unexpectedly returned {value} which is not a child of {node}"
        )
        self.node = node
        self.value = value

    def detail(self) -> dict[str, Any]:
        return {"node": str(self.node), "value": str(self.value)}


class FinalizeError(GraphError):
    """Raised by ``Graph.freeze()`` when finalization reports errors."""

    code = "FINALIZE_FAILED"

    def __init__(self, errors: Sequence[GraphError]) -> None:
        self.errors = list(errors)
        lines = "\n".join(f"  {err}" for err in self.errors)
        super().__init__(f"graph finalization failed with {len(self.errors)} error(s):\n{lines}")

    def detail(self) -> dict[str, Any]:
        return {"errors": [err.to_service_error().model_dump() for err in self.errors]}
