"""Graph: a DAG of keyed nodes built by declarations, then queried.

The graph starts *under construction*: callers use :meth:`Graph.add_node`
and :meth:`Graph.add_edge`, in any order, to build it, but cannot query it.
Once construction is complete, :meth:`Graph.finalize` checks there are no
dangling edges and freezes the graph, making it queryable.

INVARIANT: the graph is always acyclic. Every ``add_edge`` walks the
descendants of the new child and rejects the edge if the parent is among
them, so traversals never need to guard against cycles.

"def" order means two different things depending on the call:
``sort_nodes`` uses the order nodes were declared, while ``children``,
``parents`` and ``descendants`` use the order edges to the relatives were
declared.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from declgraph.graph.errors import (
    CycleError,
    DanglingEdgeError,
    FinalizedError,
    FinalizeError,
    ForeignKeyError,
    ForeignNodeError,
    InvalidOrderError,
    InvalidTopologyError,
    NodeRedeclarationError,
    NotFinalizedError,
    VisitorContractError,
)
from declgraph.graph.keys import Key, KeySet
from declgraph.graph.model import Edge, Node, Props
from declgraph.graph.types import OrderBy, Topology

logger = logging.getLogger(__name__)

Visitor = Callable[[Node, list[Node]], Iterable[Node]]
"""Receives a node and its ordered children, returns the children to visit next."""

_EDGE_ORDERS = tuple(o.value for o in OrderBy)
_NODE_ORDERS = (OrderBy.KEY.value, OrderBy.DEF.value)


def _validate_order(order_by: str | OrderBy, allowed: tuple[str, ...] = _EDGE_ORDERS) -> OrderBy:
    if isinstance(order_by, str) and order_by in allowed:
        return OrderBy(order_by)
    raise InvalidOrderError(order_by, allowed)


def _validate_topology(topology: str | Topology) -> Topology:
    try:
        return Topology(topology)
    except ValueError:
        raise InvalidTopologyError(topology) from None


def _sort_by_edge_order(nodes: list[Node], order_by: OrderBy) -> list[Node]:
    """Reorder children or parents of a node in place.

    *nodes* must come from ``list_children()``/``list_parents()``, i.e. be a
    fresh list already in edge-declaration order.
    """
    match order_by:
        case OrderBy.DEF:
            pass
        case OrderBy.DEF_DESC:
            nodes.reverse()
        case OrderBy.KEY:
            nodes.sort(key=lambda n: n.key.pairs)
        case OrderBy.KEY_DESC:
            nodes.sort(key=lambda n: n.key.pairs, reverse=True)
    return nodes


def _filtered_children(cur: Node, order_by: OrderBy, visitor: Visitor | None) -> list[Node]:
    children = _sort_by_edge_order(cur.list_children(), order_by)
    if visitor is None:
        return children
    # The callback may only narrow or reorder the true children. Anything
    # else (e.g. a node it saved from an earlier call) is rejected.
    nxt = list(visitor(cur, list(children)))
    allowed = set(children)
    for n in nxt:
        if n not in allowed:
            raise VisitorContractError(cur, n)
    return nxt


def _descend_breadth(root: Node, order_by: OrderBy, visitor: Visitor | None) -> list[Node]:
    queue: deque[Node] = deque([root])
    queued: set[Node] = {root}
    visited: list[Node] = []
    while queue:
        cur = queue.popleft()
        visited.append(cur)
        for n in _filtered_children(cur, order_by, visitor):
            if n not in queued:
                queued.add(n)
                queue.append(n)
    return visited


def _descend_depth(root: Node, order_by: OrderBy, visitor: Visitor | None) -> list[Node]:
    # Post-order: a node is emitted right after all children it leads to.
    visited: list[Node] = []
    seen: set[Node] = {root}
    stack = [(root, iter(_filtered_children(root, order_by, visitor)))]
    while stack:
        node, pending = stack[-1]
        for n in pending:
            if n not in seen:
                seen.add(n)
                stack.append((n, iter(_filtered_children(n, order_by, visitor))))
                break
        else:
            stack.pop()
            visited.append(node)
    return visited


class Graph:
    """A DAG of keyed nodes with a construction phase and a query phase."""

    def __init__(self) -> None:
        self.keyset = KeySet()
        self._nodes: dict[Key, Node] = {}
        self._edges: list[Edge] = []
        self._next_index = 0
        self._finalized = False

    def __repr__(self) -> str:
        state = "finalized" if self._finalized else "under construction"
        return f"<Graph {len(self._nodes)} nodes, {len(self._edges)} edges, {state}>"

    @property
    def finalized(self) -> bool:
        return self._finalized

    def key(self, *pairs: str) -> Key:
        """Return the interned key for ``(kind, id)`` *pairs*."""
        return self.keyset.key(*pairs)

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _validate_key(self, argument: str, key: Key) -> None:
        if key not in self.keyset:
            raise ForeignKeyError(argument, key)

    def _require_finalized(self) -> None:
        if not self._finalized:
            raise NotFinalizedError()

    def _declared_node(self, key: Key) -> Node | None:
        # A node left predeclared by a rejected self-loop has no edges and
        # counts as missing.
        node = self._nodes.get(key)
        if node is None or not node.declared:
            return None
        return node

    def _init_node(self, key: Key) -> Node:
        """Return the node at *key*, adding a predeclared one if missing."""
        if self._finalized:
            raise FinalizedError()
        node = self._nodes.get(key)
        if node is None:
            node = Node(key=key)
            self._nodes[key] = node
        return node

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_node(
        self,
        key: Key,
        props: Mapping[Any, Any] | None = None,
        idempotent: bool = False,
        trace: object | None = None,
    ) -> Node:
        """Declare the node at *key*.

        A node may be declared once. Idempotent nodes may be declared again
        if every declaration is idempotent and passes equal props; such
        repeats are no-ops that keep the first index and trace.

        Freezes *props* (deeply) as a side effect.

        Raises:
            FinalizedError: The graph is finalized.
            ForeignKeyError: *key* is from another graph.
            InvalidPropertyKeyError: *props* has a non-string key.
            NodeRedeclarationError: The node is already declared.
        """
        if self._finalized:
            raise FinalizedError()
        self._validate_key("key", key)
        frozen = Props(props)

        node = self._init_node(key)
        if not node.declared:
            node.declare(self._next_index, frozen, idempotent, trace)
            self._next_index += 1
            logger.debug("Declared node %s (index %d)", key, node.index)
            return node

        if node.idempotent and idempotent and node.props == frozen:
            logger.debug("Idempotent redeclaration of node %s", key)
            return node
        raise NodeRedeclarationError(trace, node)

    def add_edge(
        self,
        parent: Key,
        child: Key,
        title: str = "",
        trace: object | None = None,
    ) -> None:
        """Add an edge from *parent* to *child*.

        Neither node has to be declared yet: nodes and edges may come in any
        order as long as the graph is complete when finalized. Re-adding the
        same edge (same title) is a no-op; the first trace is kept.

        Raises:
            FinalizedError: The graph is finalized.
            ForeignKeyError: *parent* or *child* is from another graph.
            CycleError: The edge would introduce a cycle. The graph is left
                unchanged apart from predeclared endpoints.
        """
        if self._finalized:
            raise FinalizedError()
        self._validate_key("parent", parent)
        self._validate_key("child", child)

        edge = Edge(
            parent=self._init_node(parent),
            child=self._init_node(child),
            title=title,
            trace=trace,
        )

        for existing in edge.parent._children:
            if existing.child is edge.child and existing.title == title:
                logger.debug("Edge %s already exists", existing)
                return

        def check(node: Node, path: list[Edge]) -> None:
            if node is edge.parent:
                raise CycleError(trace, edge, path)

        try:
            edge.child.visit_descendants(check)
        except CycleError:
            logger.debug("Rejected edge %s: introduces a cycle", edge)
            raise

        edge.parent._children.append(edge)
        edge.child._parents.append(edge)
        self._edges.append(edge)
        logger.debug("Added edge %s", edge)

    def finalize(self) -> list[DanglingEdgeError]:
        """Verify every edge connects declared nodes, then freeze the graph.

        Returns all dangling edges found. If there are none the graph becomes
        finalized (immutable and queryable); otherwise it stays under
        construction so the caller can declare the missing nodes and retry.
        Finalizing a finalized graph is a no-op.
        """
        if self._finalized:
            return []
        errs = [
            DanglingEdgeError(e) for e in self._edges if not (e.parent.declared and e.child.declared)
        ]
        self._finalized = not errs
        logger.debug(
            "Finalize: %d nodes, %d edges, %d dangling",
            len(self._nodes),
            len(self._edges),
            len(errs),
        )
        return errs

    def freeze(self) -> None:
        """Finalize the graph, raising :class:`FinalizeError` on any error."""
        errs = self.finalize()
        if errs:
            raise FinalizeError(errs)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def node(self, key: Key) -> Node | None:
        """Return the node at *key*, or None if there is none."""
        self._require_finalized()
        self._validate_key("key", key)
        return self._declared_node(key)

    def nodes(self) -> list[Node]:
        """All nodes, in declaration order."""
        self._require_finalized()
        return sorted((n for n in self._nodes.values() if n.declared), key=lambda n: n.index)

    def edges(self) -> list[Edge]:
        """All edges, in declaration order."""
        self._require_finalized()
        return list(self._edges)

    def children(self, parent: Key, order_by: str | OrderBy = OrderBy.KEY) -> list[Node]:
        """Direct children of *parent*, ordered per *order_by*.

        ``key``/``~key`` order by node key; ``def``/``~def`` by the order the
        edges to the children were declared. A missing node has no children.
        """
        return self._ordered_relatives(parent, "parent", order_by, Node.list_children)

    def parents(self, child: Key, order_by: str | OrderBy = OrderBy.KEY) -> list[Node]:
        """Direct parents of *child*, ordered per *order_by* (see :meth:`children`)."""
        return self._ordered_relatives(child, "child", order_by, Node.list_parents)

    def descendants(
        self,
        root: Key,
        order_by: str | OrderBy = OrderBy.KEY,
        topology: str | Topology = Topology.BREADTH,
        visitor: Visitor | None = None,
    ) -> list[Node]:
        """Visit *root* and everything reachable from it.

        Returns visited nodes in visit order, *root* included: first for
        breadth-first, last for depth-first (post-order). Each node is visited
        once even if reachable through several paths. A missing *root* yields
        an empty list.

        *visitor*, if given, is called for every visited node with its
        children (ordered per *order_by*) and returns the ones to visit next.
        It always sees all children, including already visited ones; visited
        nodes are skipped even if it returns them.

        Raises:
            VisitorContractError: *visitor* returned a non-child.
        """
        self._require_finalized()
        self._validate_key("root", root)
        order = _validate_order(order_by)
        topo = _validate_topology(topology)

        root_node = self._declared_node(root)
        if root_node is None:
            return []
        if topo is Topology.BREADTH:
            return _descend_breadth(root_node, order, visitor)
        return _descend_depth(root_node, order, visitor)

    def sort_nodes(self, nodes: list[Node], order_by: str | OrderBy = OrderBy.KEY) -> None:
        """Sort *nodes* of this graph in place.

        ``key`` orders by node key, ``def`` by the order nodes were declared.

        Raises:
            ForeignNodeError: An element is not a node of this graph.
        """
        order = _validate_order(order_by, _NODE_ORDERS)
        # Indexes of different graphs are not comparable.
        for n in nodes:
            if not isinstance(n, Node) or not n.belongs_to(self):
                raise ForeignNodeError(n)
        if order is OrderBy.DEF:
            nodes.sort(key=lambda n: n.index)
        else:
            nodes.sort(key=lambda n: n.key.pairs)

    def _ordered_relatives(
        self,
        key: Key,
        argument: str,
        order_by: str | OrderBy,
        relatives: Callable[[Node], list[Node]],
    ) -> list[Node]:
        self._require_finalized()
        self._validate_key(argument, key)
        order = _validate_order(order_by)
        node = self._declared_node(key)
        if node is None:
            return []
        return _sort_by_edge_order(relatives(node), order)
