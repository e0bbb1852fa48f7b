"""declgraph: a declarative-configuration DAG engine."""

from declgraph.graph.engine import Graph, Visitor
from declgraph.graph.errors import GraphError
from declgraph.graph.keys import Key, KeySet
from declgraph.graph.model import Edge, Node, Props
from declgraph.graph.trace import Trace, capture_trace
from declgraph.graph.types import OrderBy, Topology

__version__ = "0.1.0"

__all__ = [
    "Edge",
    "Graph",
    "GraphError",
    "Key",
    "KeySet",
    "Node",
    "OrderBy",
    "Props",
    "Topology",
    "Trace",
    "Visitor",
    "__version__",
    "capture_trace",
]
