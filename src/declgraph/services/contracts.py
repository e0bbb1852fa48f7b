"""Typed payload contracts for the snapshot handed to artifact generators.

These models validate payload shapes before they leave the session layer,
so a regression in the snapshot layout fails fast in tests.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T", bound=BaseModel)


def dump_validated(model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a normalized payload dict."""
    model = model_cls.model_validate(data)
    return model.model_dump(mode="python")


class NodeItem(BaseModel):
    """One declared node."""

    model_config = ConfigDict(extra="forbid")

    key: str
    pairs: list[str]
    kind: str
    id: str
    index: int
    idempotent: bool
    props: dict[str, Any]
    children: list[str]
    parents: list[str]


class EdgeItem(BaseModel):
    """One relation, in declaration order."""

    model_config = ConfigDict(extra="forbid")

    parent: str
    child: str
    title: str


class SnapshotData(BaseModel):
    """Payload contract for ``GraphSession.snapshot``."""

    node_count: int
    edge_count: int
    nodes: list[NodeItem]
    edges: list[EdgeItem]
