"""Provenance traces: where a node or edge was declared.

The graph never interprets a trace; it only stores it and prints it back
inside error backtraces. Any object with a meaningful ``str()`` works.
:func:`capture_trace` is the default producer used by the session layer.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass


@dataclass(frozen=True)
class Trace:
    """A captured call stack, outermost frame first."""

    frames: tuple[traceback.FrameSummary, ...] = ()

    def __str__(self) -> str:
        lines = ["Traceback (most recent call last):\n"]
        lines.extend(traceback.format_list(list(self.frames)))
        return "".join(lines)


def capture_trace(skip: int = 0, limit: int | None = None) -> Trace:
    """Capture the caller's stack.

    Args:
        skip: Number of innermost frames to drop, in addition to this
            function's own frame.
        limit: Keep at most this many innermost frames (after skipping).
    """
    frames = traceback.extract_stack()[: -(skip + 1)]
    if limit is not None:
        frames = frames[-limit:] if limit > 0 else []
    return Trace(frames=tuple(frames))
