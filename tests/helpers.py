"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from typing import Any

from aiengine.agents.router import Router
from aiengine.config import RouterConfig
from aiengine.errors import RetrievalUnavailable

README_TEXT = "# Demo\n\nA tiny workspace used by the tests.\n"


class ScriptedAdapter:
    """Model adapter stub that streams a fixed list of fragments.

    Records every prompt it was given and whether its stream was closed, so
    tests can check that the backend connection is released.

    Example:
        from tests.helpers import ScriptedAdapter

        adapter = ScriptedAdapter(["Hello", " world"])
    """

    def __init__(
        self,
        fragments: list[str],
        name: str = "scripted",
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.fragments = list(fragments)
        self.name = name
        self.error = error
        self.delay = delay
        self.prompts: list[Any] = []
        self.yielded = 0
        self.closed = False

    @property
    def started(self) -> bool:
        return bool(self.prompts)

    async def stream(self, prompt):
        self.prompts.append(prompt)
        try:
            for fragment in self.fragments:
                if self.delay:
                    await asyncio.sleep(self.delay)
                self.yielded += 1
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


def make_router(
    deliberate: ScriptedAdapter,
    fast: ScriptedAdapter,
    config: RouterConfig | None = None,
) -> Router:
    """Router whose tiers always hand back the given adapter instances."""
    return Router(
        config or RouterConfig(length_threshold=400, complex_keywords=["design"]),
        {"deliberate": lambda: deliberate, "fast": lambda: fast},
    )


class StaticRetrieval:
    """Retrieval stub returning a fixed context and recording queries."""

    def __init__(self, context: str = ""):
        self.context = context
        self.queries: list[str] = []
        self.indexed: dict[str, str] = {}

    async def search(self, query: str) -> str:
        self.queries.append(query)
        return self.context

    async def index(self, key: str, text: str) -> None:
        self.indexed[key] = text


class BrokenRetrieval:
    """Retrieval stub whose every call fails."""

    def __init__(self, error: Exception | None = None):
        self.error = error or RetrievalUnavailable("index offline")

    async def search(self, query: str) -> str:
        raise self.error

    async def index(self, key: str, text: str) -> None:
        raise self.error


class RecordingAudit:
    """Audit sink that keeps every event in memory."""

    def __init__(self):
        self.events: list[dict[str, Any]] = []

    def emit(self, event: dict[str, Any]) -> None:
        self.events.append(event)


class ExplodingAudit:
    def emit(self, event: dict[str, Any]) -> None:
        raise RuntimeError("audit backend down")


async def collect(stream) -> list:
    return [item async for item in stream]


def event_types(events) -> list[str]:
    return [event.type for event in events]
