"""Traversal ordering and topology enums.

Both accept their plain string values wherever the graph API takes them,
so the embedding runtime can pass ``"key"`` or ``OrderBy.KEY`` interchangeably.
"""

from __future__ import annotations

from enum import StrEnum


class OrderBy(StrEnum):
    """How relatives of a node (or a list of nodes) are ordered."""

    KEY = "key"
    KEY_DESC = "~key"
    DEF = "def"
    DEF_DESC = "~def"


class Topology(StrEnum):
    """Shape of a descendants traversal."""

    BREADTH = "breadth"
    DEPTH = "depth"
