"""Engine error taxonomy.

Every failure the core can surface derives from ``EngineError``. Each class
carries an ``error_code`` so the HTTP layer and the tool-result payloads can
report failures in one consistent shape.

Recoverable stage failures (tool execution, retrieval) are absorbed by the
engine; ``BackendError`` and ``Cancelled`` end the stream without ``done``.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""

    error_code: str = "engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class ValidationError(EngineError):
    """Malformed EngineInput, rejected before the agent loop starts."""

    error_code = "validation_error"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        return {**super().to_dict(), "field": self.field}


class BackendError(EngineError):
    """A model backend call failed. Terminal for the whole stream."""

    error_code = "backend_error"

    def __init__(self, backend: str, message: str, status_code: int | None = None):
        super().__init__(f"{backend}: {message}")
        self.backend = backend
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "backend": self.backend,
            "status_code": self.status_code,
        }


class Cancelled(EngineError):
    """The caller-supplied deadline expired mid-run."""

    error_code = "cancelled"


class RetrievalUnavailable(EngineError):
    """The retrieval service failed; the engine proceeds with empty context."""

    error_code = "retrieval_unavailable"


class ToolExecutionError(EngineError):
    """A tool invocation failed. Reported as the content of the tool event."""

    error_code = "tool_error"


class NotFound(ToolExecutionError):
    error_code = "not_found"


class PathRejected(ToolExecutionError):
    """A tool path is absolute or escapes the workspace root."""

    error_code = "path_rejected"


class IngestionError(EngineError):
    """Cloning or walking a repository for ingestion failed."""

    error_code = "ingestion_error"
