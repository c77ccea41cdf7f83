"""Data model — prompts, engine input/output events, tool calls, and HTTP bodies."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ToolName = Literal["read_file", "propose_edit"]


class Prompt(BaseModel):
    """A system preamble plus the user turn. Built fresh for every call."""

    model_config = ConfigDict(frozen=True)

    system: str
    user: str


# ---------------------------------------------------------------------------
# Engine input
# ---------------------------------------------------------------------------


class FileAttachment(BaseModel):
    """A file the caller attached to the request."""

    path: str
    content: str


class EngineInput(BaseModel):
    """One stateless engine invocation.

    Accepts the camelCase wire names (``userMessage``, ``sessionId``) as well
    as the Python field names. ``session_id`` is an opaque correlation token.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    user_message: str
    session_id: str
    files: list[FileAttachment] = []

    @field_validator("user_message", "session_id")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


# ---------------------------------------------------------------------------
# Engine output (closed tagged union)
# ---------------------------------------------------------------------------


class TokenEvent(BaseModel):
    """A generated text fragment, in generation order."""

    type: Literal["token"] = "token"
    content: str


class ToolEvent(BaseModel):
    """The serialized result (or error payload) of the single tool call."""

    type: Literal["tool"] = "tool"
    content: str


class DoneEvent(BaseModel):
    """Terminal marker. Exactly one per successful run, always last."""

    type: Literal["done"] = "done"


EngineOutput = Annotated[
    TokenEvent | ToolEvent | DoneEvent, Field(discriminator="type")
]


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class ToolCall(BaseModel):
    """A structured tool invocation decoded from model output.

    Extra top-level fields are ignored; ``tool`` and ``params`` are required.
    """

    model_config = ConfigDict(extra="ignore")

    tool: ToolName
    params: dict[str, Any]


class DiffSpan(BaseModel):
    """One line-level change record produced by ``propose_edit``."""

    kind: Literal["added", "removed", "unchanged"]
    value: str
    count: int


# ---------------------------------------------------------------------------
# HTTP request/response bodies
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    """Body of ``POST /chat``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    session_id: str | None = None
    files: list[FileAttachment] = []
    timeout_seconds: float | None = Field(default=None, gt=0)  # caller deadline for the whole run


class IngestRequest(BaseModel):
    """Body of ``POST /ingest``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    repo_url: str


class IngestResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    files_indexed: int


class StreamChunk(BaseModel):
    """A single SSE frame in the ``/chat`` response stream.

    Types:
        token: generated text fragment
        tool:  tool result or tool error payload
        done:  stream is complete
        error: the run failed (backend error or cancellation); no ``done`` follows
    """

    type: str
    content: str = ""
    error: dict[str, Any] | None = None
