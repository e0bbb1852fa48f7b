"""Tests for GraphSession: the scripting-runtime binding layer."""

from __future__ import annotations

import pytest

from declgraph.config.settings import GraphSettings
from declgraph.graph.errors import (
    FinalizeError,
    ForeignNodeError,
    InvalidKeyError,
    InvalidOrderError,
    NodeRedeclarationError,
    VisitorContractError,
)
from declgraph.graph.trace import Trace
from declgraph.graph.types import OrderBy, Topology
from declgraph.services.session import GraphSession
from tests.conftest import FakeTrace, names


def _tree(session: GraphSession) -> GraphSession:
    root = session.key("service", "root")
    for name in ("root", "X", "Y", "Z"):
        session.add_node(session.key("service", name))
    session.add_edge(root, session.key("service", "X"))
    session.add_edge(root, session.key("service", "Y"))
    session.add_edge(session.key("service", "X"), session.key("service", "Z"))
    assert session.finalize() == []
    return session


class TestKey:
    def test_builds_interned_key(self, session: GraphSession) -> None:
        assert session.key("service", "a") is session.graph.key("service", "a")

    def test_rejects_non_strings(self, session: GraphSession) -> None:
        with pytest.raises(InvalidKeyError, match="arg #1 was int"):
            session.key("service", 42)


class TestConstruction:
    def test_captures_trace_when_missing(self, session: GraphSession) -> None:
        node = session.add_node(session.key("service", "a"))
        assert isinstance(node.trace, Trace)
        assert node.trace.frames[-1].name == "test_captures_trace_when_missing"

    def test_trace_limit_from_settings(self) -> None:
        session = GraphSession(settings=GraphSettings(trace_limit=1))
        node = session.add_node(session.key("service", "a"))
        assert isinstance(node.trace, Trace)
        assert len(node.trace.frames) == 1

    def test_explicit_trace_kept(self, session: GraphSession) -> None:
        trace = FakeTrace("script.star:3")
        node = session.add_node(session.key("service", "a"), trace=trace)
        assert node.trace is trace

    def test_edge_trace_captured(self, session: GraphSession) -> None:
        session.add_edge(session.key("service", "a"), session.key("service", "b"))
        (edge,) = session.graph._edges
        assert isinstance(edge.trace, Trace)
        assert edge.trace.frames[-1].name == "test_edge_trace_captured"

    def test_none_props_means_empty(self, session: GraphSession) -> None:
        node = session.add_node(session.key("service", "a"), None)
        assert node.props == {}

    def test_redeclaration_backtrace(self, session: GraphSession) -> None:
        k = session.key("service", "a")
        session.add_node(k, trace=FakeTrace("first"))
        with pytest.raises(NodeRedeclarationError) as exc:
            session.add_node(k, trace=FakeTrace("second"))
        assert exc.value.backtrace().startswith("at second\nError: service:a is redeclared")


class TestFinalize:
    def test_returns_messages(self, session: GraphSession) -> None:
        a = session.key("service", "a")
        session.add_node(a, {})
        session.add_edge(a, session.key("service", "b"))
        assert session.finalize() == ["service:a refers to undefined service:b"]
        session.add_node(session.key("service", "b"), {}, False, FakeTrace("b"))
        assert session.finalize() == []
        assert session.graph.finalized

    def test_logs_dangling_edges(
        self, session: GraphSession, caplog: pytest.LogCaptureFixture
    ) -> None:
        session.add_edge(session.key("service", "a"), session.key("service", "b"))
        with caplog.at_level("WARNING", logger="declgraph"):
            session.finalize()
        assert "Dangling edge" in caplog.text

    def test_freeze_raises(self, session: GraphSession) -> None:
        session.add_edge(session.key("service", "a"), session.key("service", "b"))
        with pytest.raises(FinalizeError, match="1 error"):
            session.freeze()


class TestQueries:
    def test_defaults_from_settings(self) -> None:
        settings = GraphSettings(default_order_by=OrderBy.KEY_DESC, default_topology=Topology.DEPTH)
        session = _tree(GraphSession(settings=settings))
        root = session.key("service", "root")
        assert names(session.children(root)) == ["Y", "X"]
        assert names(session.descendants(root)) == ["Y", "Z", "X", "root"]

    def test_explicit_order_wins(self, session: GraphSession) -> None:
        _tree(session)
        root = session.key("service", "root")
        assert names(session.children(root, "key")) == ["X", "Y"]
        assert names(session.descendants(root, order_by="key", topology="breadth")) == [
            "root",
            "X",
            "Y",
            "Z",
        ]

    def test_parents_and_node(self, session: GraphSession) -> None:
        _tree(session)
        z = session.key("service", "Z")
        assert names(session.parents(z)) == ["X"]
        node = session.node(z)
        assert node is not None
        assert str(node) == "service:Z"

    def test_callback_filters(self, session: GraphSession) -> None:
        _tree(session)
        result = session.descendants(
            session.key("service", "root"),
            callback=lambda node, children: [c for c in children if c.key.id != "Y"],
        )
        assert names(result) == ["root", "X", "Z"]

    def test_callback_tuple_accepted(self, session: GraphSession) -> None:
        _tree(session)
        result = session.descendants(
            session.key("service", "root"), callback=lambda node, children: tuple(children)
        )
        assert names(result) == ["root", "X", "Y", "Z"]

    def test_callback_must_return_list(self, session: GraphSession) -> None:
        _tree(session)
        with pytest.raises(VisitorContractError, match="returned NoneType instead of a list"):
            session.descendants(session.key("service", "root"), callback=lambda n, c: None)

    def test_callback_elements_must_be_nodes(self, session: GraphSession) -> None:
        _tree(session)
        with pytest.raises(VisitorContractError, match="returned str as element #0"):
            session.descendants(session.key("service", "root"), callback=lambda n, c: ["X"])

    def test_sorted_nodes(self, session: GraphSession) -> None:
        _tree(session)
        nodes = session.descendants(session.key("service", "root"))
        by_def = session.sorted_nodes(reversed(nodes), "def")
        assert names(by_def) == ["root", "X", "Y", "Z"]
        assert names(session.sorted_nodes(iter(nodes[::-1]))) == ["X", "Y", "Z", "root"]

    def test_sorted_nodes_rejects_non_nodes(self, session: GraphSession) -> None:
        with pytest.raises(ForeignNodeError, match="expecting a graph node"):
            session.sorted_nodes(["a"])

    def test_sorted_nodes_rejects_reverse_order(self, session: GraphSession) -> None:
        with pytest.raises(InvalidOrderError):
            session.sorted_nodes([], "~def")


class TestSnapshot:
    def test_not_finalized(self, session: GraphSession) -> None:
        result = session.snapshot()
        assert result.ok is False
        assert result.op == "snapshot"
        assert result.error is not None
        assert result.error.code == "NOT_FINALIZED"

    def test_payload(self, session: GraphSession) -> None:
        a = session.key("service", "a")
        b = session.key("service", "a", "port", "http")
        session.add_node(a, {"hosts": ["h1"]})
        session.add_node(b, {"number": 80}, idempotent=True)
        session.add_edge(a, b, "exposes")
        session.finalize()

        result = session.snapshot()
        assert result.ok
        data = result.data
        assert data["node_count"] == 2
        assert data["edge_count"] == 1
        assert data["nodes"][0] == {
            "key": "service:a",
            "pairs": ["service", "a"],
            "kind": "service",
            "id": "a",
            "index": 0,
            "idempotent": False,
            "props": {"hosts": ["h1"]},
            "children": ["service:a/port:http"],
            "parents": [],
        }
        assert data["nodes"][1]["idempotent"] is True
        assert data["edges"] == [
            {"parent": "service:a", "child": "service:a/port:http", "title": "exposes"}
        ]


class TestReport:
    def test_traced_error_includes_backtrace(self, session: GraphSession) -> None:
        k = session.key("service", "a")
        session.add_node(k, trace=FakeTrace("first"))
        with pytest.raises(NodeRedeclarationError) as exc:
            session.add_node(k, trace=FakeTrace("second"))
        result = GraphSession.report(exc.value, "add_node")
        assert result.ok is False
        assert result.error is not None
        assert result.error.code == "NODE_REDECLARATION"
        assert result.error.detail["backtrace"].startswith("at second\n")
        assert result.warnings == []

    def test_missing_trace_warns(self, session: GraphSession) -> None:
        graph = session.graph
        k = graph.key("service", "a")
        graph.add_node(k)
        with pytest.raises(NodeRedeclarationError) as exc:
            graph.add_node(k)
        result = GraphSession.report(exc.value, "add_node")
        assert result.warnings == ["No provenance trace recorded"]
        assert result.error is not None
        assert "backtrace" not in result.error.detail


class TestCreate:
    def test_create_with_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DECLGRAPH_DEFAULT_TOPOLOGY", raising=False)
        session = GraphSession.create(default_topology="depth", trace_limit=None)
        assert session.settings.default_topology is Topology.DEPTH
        assert session.graph.finalized is False

    def test_sessions_are_independent(self) -> None:
        s1 = GraphSession.create()
        s2 = GraphSession.create()
        assert s1.key("service", "a") is not s2.key("service", "a")
