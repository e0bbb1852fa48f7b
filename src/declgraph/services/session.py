"""GraphSession: the surface the configuration-scripting runtime calls.

Wraps one :class:`~declgraph.graph.engine.Graph` for one evaluation
context. On top of the raw graph API it:

- type-checks values coming from the scripting side (key parts, callback
  return values, node lists);
- captures a provenance trace when the caller doesn't pass one;
- fills in ``order_by``/``topology`` defaults from :class:`GraphSettings`;
- reports finalize errors as strings and the finished graph as a
  validated :class:`ServiceResult` snapshot.

Usage::

    session = GraphSession.create()
    svc = session.key("service", "frontend")
    session.add_node(svc, {"port": 8080})
    session.add_edge(svc, session.key("service", "db"))
    errors = session.finalize()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from declgraph.config.logging import configure_logging
from declgraph.config.settings import GraphSettings
from declgraph.graph.engine import Graph, Visitor
from declgraph.graph.errors import (
    ForeignNodeError,
    GraphError,
    InvalidKeyError,
    TracedGraphError,
    VisitorContractError,
)
from declgraph.graph.keys import Key
from declgraph.graph.model import Node
from declgraph.graph.trace import capture_trace
from declgraph.graph.types import OrderBy, Topology
from declgraph.services.contracts import SnapshotData, dump_validated
from declgraph.services.result import ServiceResult

logger = logging.getLogger(__name__)

Callback = Callable[[Node, list[Node]], Any]
"""Scripting-side traversal filter; must return a list of nodes."""


class GraphSession:
    """One construction session: build, finalize, then query a graph."""

    def __init__(self, graph: Graph | None = None, settings: GraphSettings | None = None) -> None:
        self._graph = graph if graph is not None else Graph()
        self._settings = settings if settings is not None else GraphSettings()

    @classmethod
    def create(cls, *, setup_logging: bool = False, **overrides: Any) -> GraphSession:
        """Build a session on a fresh graph from settings *overrides*.

        With *setup_logging*, also route logs per ``verbose``/``log_json``.
        """
        settings = GraphSettings.from_overrides(**overrides)
        if setup_logging:
            configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        return cls(settings=settings)

    @property
    def graph(self) -> Graph:
        return self._graph

    @property
    def settings(self) -> GraphSettings:
        return self._settings

    def _trace(self, trace: object | None) -> object:
        if trace is not None:
            return trace
        # Skip this helper and the session method that called it.
        return capture_trace(skip=2, limit=self._settings.trace_limit)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def key(self, *pairs: object) -> Key:
        """``key(kind1, id1, kind2, id2, ...)``"""
        for idx, arg in enumerate(pairs):
            if not isinstance(arg, str):
                raise InvalidKeyError(
                    f"key: all arguments must be strings, arg #{idx} was {type(arg).__name__}",
                    pairs,
                )
        return self._graph.key(*pairs)  # type: ignore[arg-type]

    def add_node(
        self,
        key: Key,
        props: Mapping[Any, Any] | None = None,
        idempotent: bool = False,
        trace: object | None = None,
    ) -> Node:
        return self._graph.add_node(key, props or {}, bool(idempotent), self._trace(trace))

    def add_edge(
        self,
        parent: Key,
        child: Key,
        title: str = "",
        trace: object | None = None,
    ) -> None:
        self._graph.add_edge(parent, child, title, self._trace(trace))

    def finalize(self) -> list[str]:
        """Finalize the graph, returning error messages (empty on success)."""
        errs = self._graph.finalize()
        for err in errs:
            logger.warning("Dangling edge: %s", err)
        if not errs:
            logger.debug("Graph finalized")
        return [str(err) for err in errs]

    def freeze(self) -> None:
        """Finalize, raising ``FinalizeError`` if the graph is incomplete."""
        self._graph.freeze()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def node(self, key: Key) -> Node | None:
        return self._graph.node(key)

    def children(self, parent: Key, order_by: str | OrderBy | None = None) -> list[Node]:
        return self._graph.children(parent, order_by or self._settings.default_order_by)

    def parents(self, child: Key, order_by: str | OrderBy | None = None) -> list[Node]:
        return self._graph.parents(child, order_by or self._settings.default_order_by)

    def descendants(
        self,
        root: Key,
        callback: Callback | None = None,
        order_by: str | OrderBy | None = None,
        topology: str | Topology | None = None,
    ) -> list[Node]:
        """Traverse from *root*; *callback(node, children)* picks what to visit."""
        visitor: Visitor | None = None
        if callback is not None:

            def checked(node: Node, children: list[Node]) -> list[Node]:
                ret = callback(node, children)
                if not isinstance(ret, list | tuple):
                    raise VisitorContractError(
                        node,
                        ret,
                        f"descendants: callback {callback!r} unexpectedly returned "
                        f"{type(ret).__name__} instead of a list",
                    )
                for idx, item in enumerate(ret):
                    if not isinstance(item, Node):
                        raise VisitorContractError(
                            node,
                            item,
                            f"descendants: callback {callback!r} unexpectedly returned "
                            f"{type(item).__name__} as element #{idx} instead of a graph node",
                        )
                return list(ret)

            visitor = checked

        return self._graph.descendants(
            root,
            order_by or self._settings.default_order_by,
            topology or self._settings.default_topology,
            visitor,
        )

    def sorted_nodes(
        self, nodes: Iterable[object], order_by: str | OrderBy | None = None
    ) -> list[Node]:
        """Return *nodes* as a new list sorted by ``key`` or ``def``."""
        to_sort: list[Node] = []
        for val in nodes:
            if not isinstance(val, Node):
                raise ForeignNodeError(val, f"sorted_nodes: got {val!r}, expecting a graph node")
            to_sort.append(val)
        self._graph.sort_nodes(to_sort, order_by or OrderBy.KEY)
        return to_sort

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def report(err: GraphError, op: str) -> ServiceResult:
        """Convert a graph error raised by *op* into a failed result."""
        warnings: list[str] = []
        if isinstance(err, TracedGraphError) and err.trace is None:
            warnings.append("No provenance trace recorded")
        return ServiceResult(ok=False, op=op, error=err.to_service_error(), warnings=warnings)

    def snapshot(self) -> ServiceResult:
        """Describe the finalized graph for artifact generators."""
        try:
            nodes = self._graph.nodes()
            edges = self._graph.edges()
        except GraphError as exc:
            return self.report(exc, "snapshot")

        data = {
            "node_count": len(nodes),
            "edge_count": len(edges),
            "nodes": [
                {
                    "key": str(n.key),
                    "pairs": list(n.key.pairs),
                    "kind": n.key.kind,
                    "id": n.key.id,
                    "index": n.index,
                    "idempotent": n.idempotent,
                    "props": n.props.to_dict() if n.props is not None else {},
                    "children": [str(c.key) for c in n.list_children()],
                    "parents": [str(p.key) for p in n.list_parents()],
                }
                for n in nodes
            ],
            "edges": [
                {"parent": str(e.parent.key), "child": str(e.child.key), "title": e.title}
                for e in edges
            ],
        }
        return ServiceResult(ok=True, op="snapshot", data=dump_validated(SnapshotData, data))
