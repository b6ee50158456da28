"""Error schemas.

SerializedError is the JSON shape of a declared error and its cause chain.
HTTP error responses use a separate envelope:
{"error": {"code": "...", "message": "...", "fields": {...}}}.
Exception handlers in service_errors.http build these from declared errors.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class SerializedError(BaseModel):
    """A serialized error. Extra parameter fields are kept as extra keys."""

    model_config = ConfigDict(extra="allow")

    name: str
    message: str
    status: int | None = None
    stack: str | None = None
    inner_error: "SerializedError | None" = None


class ErrorDetail(BaseModel):
    """Inner error object with a machine-readable code and human-readable message."""

    code: str
    message: str
    fields: dict[str, Any] = {}
    trace: str | None = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned by all error responses."""

    error: ErrorDetail
