"""Shared pytest fixtures and test helpers for declgraph tests."""

from __future__ import annotations

from typing import Any

import pytest

from declgraph.graph.engine import Graph
from declgraph.graph.keys import Key
from declgraph.services.session import GraphSession


@pytest.fixture
def graph() -> Graph:
    """An empty graph under construction."""
    return Graph()


@pytest.fixture
def session() -> GraphSession:
    """A session on a fresh graph with default settings."""
    return GraphSession()


# ---------------------------------------------------------------------------
# Shared test helpers (used across test modules)
# ---------------------------------------------------------------------------


class FakeTrace:
    """Stand-in for an embedding runtime's captured stack."""

    def __init__(self, where: str) -> None:
        self.where = where

    def __str__(self) -> str:
        return f"at {self.where}\n"


def svc(graph: Graph, name: str) -> Key:
    """Key of a top-level service node."""
    return graph.key("service", name)


def declare(graph: Graph, *names: str, **props: Any) -> list[Key]:
    """Declare service nodes *names* (in order), all with *props*."""
    keys = [svc(graph, n) for n in names]
    for k in keys:
        graph.add_node(k, props, trace=FakeTrace(f"decl {k}"))
    return keys


def build(graph: Graph, edges: list[tuple[str, str]], *, finalize: bool = True) -> Graph:
    """Declare every node mentioned in *edges* (first mention first), then the edges."""
    seen: list[str] = []
    for parent, child in edges:
        for name in (parent, child):
            if name not in seen:
                seen.append(name)
    declare(graph, *seen)
    for parent, child in edges:
        graph.add_edge(svc(graph, parent), svc(graph, child), trace=FakeTrace(f"{parent}->{child}"))
    if finalize:
        assert graph.finalize() == []
    return graph


def names(nodes: list[Any]) -> list[str]:
    """IDs of *nodes*, for compact assertions."""
    return [n.key.id for n in nodes]
