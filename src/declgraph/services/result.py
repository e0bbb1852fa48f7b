"""ServiceResult and ServiceError: the adapter-facing result contract.

Session operations that report outcomes (rather than raising) return a
ServiceResult. Graph errors convert to ServiceError via
``GraphError.to_service_error()``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Return type for reporting session operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"snapshot"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
