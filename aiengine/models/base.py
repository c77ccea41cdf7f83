"""Model adapter contract — one streaming-completion operation per backend.

Every backend variant exposes ``stream(prompt)``: a lazy, finite,
non-restartable async sequence of non-empty text fragments whose
concatenation is the full generated text. Backend failures surface as
``BackendError``; adapters never retry.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING, Literal, Protocol

from langchain_core.messages import HumanMessage, SystemMessage

from aiengine.errors import BackendError
from aiengine.schemas import Prompt

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)

Tier = Literal["deliberate", "fast"]


class ModelAdapter(Protocol):
    """A generative backend behind a single streaming operation."""

    name: str

    def stream(self, prompt: Prompt) -> AsyncIterator[str]: ...


class UnavailableAdapter:
    """Stands in for a backend whose client could not be built.

    Routing still succeeds; the failure surfaces as ``BackendError`` on the
    first fragment, like any other backend failure.
    """

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason

    async def stream(self, prompt: Prompt) -> AsyncIterator[str]:
        logger.error(f"Backend '{self.name}' unavailable: {self.reason}")
        raise BackendError(self.name, self.reason)
        yield  # unreachable, marks this as an async generator


def extract_text(content) -> str:
    """Normalize chunk content; providers may stream a string or a list of blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # Only text blocks count: [{"type": "text", "text": "..."}]
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type", "text") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


def to_messages(prompt: Prompt) -> list:
    return [SystemMessage(content=prompt.system), HumanMessage(content=prompt.user)]


async def stream_chat_model(
    llm: BaseChatModel, prompt: Prompt, backend: str
) -> AsyncIterator[str]:
    """Stream text fragments from a LangChain chat model.

    Empty chunks (role headers, usage metadata, non-text blocks) are dropped.
    The provider stream is closed as soon as this generator is closed, which
    releases the backend connection on caller disconnect.
    """
    try:
        async with aclosing(llm.astream(to_messages(prompt))) as chunks:
            async for chunk in chunks:
                text = extract_text(chunk.content)
                if text:
                    yield text
    except BackendError:
        raise
    except Exception as e:
        status_code = getattr(e, "status_code", None)
        logger.error(f"Backend '{backend}' failed (status={status_code}): {e}")
        raise BackendError(backend, str(e), status_code=status_code) from e
