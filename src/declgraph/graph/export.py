"""Read-only NetworkX view of a finalized graph.

Artifact generators that want graph algorithms beyond what :class:`Graph`
offers (topological generations, shortest paths, drawing) can work on this
copy. It is built on demand and never fed back into the graph.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

import networkx as nx

if TYPE_CHECKING:
    from declgraph.graph.engine import Graph

# Several titled relations may connect the same pair, hence a multigraph.
_Graph: TypeAlias = nx.MultiDiGraph


def to_networkx(graph: Graph) -> _Graph:
    """Build a ``MultiDiGraph`` keyed by :class:`Key`, edges keyed by title.

    Raises:
        NotFinalizedError: *graph* is still under construction.
    """
    g: _Graph = nx.MultiDiGraph()
    for node in graph.nodes():
        g.add_node(
            node.key,
            label=str(node.key),
            kind=node.key.kind,
            id=node.key.id,
            index=node.index,
            props=node.props.to_dict() if node.props is not None else {},
        )
    for edge in graph.edges():
        g.add_edge(edge.parent.key, edge.child.key, key=edge.title, title=edge.title)
    return g
