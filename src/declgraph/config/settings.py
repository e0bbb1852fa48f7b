"""Session settings: keyword overrides and env vars in one object.

Priority chain (highest to lowest):
  1. Init kwargs (passed by the embedding runtime)
  2. Env vars (``DECLGRAPH_*`` prefix)
  3. Code defaults

Uses Pydantic Settings v2. The graph core never reads settings; only the
session layer does, to fill in defaults the scripting runtime leaves out.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings

from declgraph.graph.types import OrderBy, Topology


class GraphSettings(BaseSettings):
    """Defaults for a :class:`~declgraph.services.session.GraphSession`.

    Attributes:
        default_order_by: Order used by queries that don't specify one.
        default_topology: Topology used by ``descendants`` when unspecified.
        trace_limit: Maximum frames kept in captured provenance traces
            (None keeps the full stack).
        verbose: Enable DEBUG-level logging for ``declgraph``.
        log_json: Emit structured JSON log lines instead of console output.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "DECLGRAPH_",
    }

    default_order_by: OrderBy = OrderBy.KEY
    default_topology: Topology = Topology.BREADTH
    trace_limit: int | None = Field(default=None, ge=0)
    verbose: bool = False
    log_json: bool = False

    @classmethod
    def from_overrides(cls, **overrides: Any) -> GraphSettings:
        """Construct settings, ignoring overrides that are None.

        Lets callers forward optional arguments straight through without
        masking values that come from the environment.
        """
        return cls(**{k: v for k, v in overrides.items() if v is not None})
