"""Tests for snapshot payload contracts."""

import pytest
from pydantic import ValidationError

from declgraph.services.contracts import EdgeItem, SnapshotData, dump_validated


class TestDumpValidated:
    def test_normalizes_payload(self) -> None:
        data = dump_validated(
            SnapshotData,
            {"node_count": 0, "edge_count": 1, "nodes": [], "edges": [
                {"parent": "service:a", "child": "service:b", "title": ""},
            ]},
        )
        assert data["edges"] == [{"parent": "service:a", "child": "service:b", "title": ""}]

    def test_missing_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            dump_validated(SnapshotData, {"node_count": 0, "nodes": [], "edges": []})

    def test_extra_edge_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EdgeItem.model_validate({"parent": "a", "child": "b", "title": "", "weight": 1})
