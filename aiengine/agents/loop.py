"""Agent loop — drives one model adapter and executes at most one tool call.

States: generating → tool_executing → done.

While generating, every fragment is emitted as a token event immediately and
appended to a buffer. Only after the stream is exhausted is the buffer
inspected for a tool call (emit now, decide later). The terminal ``done``
event is emitted exactly once, whether or not a tool fired.

Suspension points are the backend's next fragment and the tool's file I/O.
If the caller stops consuming (closes this generator), the adapter stream is
closed with it, releasing the backend connection. A caller-supplied deadline
(event-loop time) bounds every backend await and the tool execution; expiry
raises ``Cancelled`` and nothing further is emitted.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from enum import Enum
from typing import TYPE_CHECKING

from aiengine.agents.parser import parse_tool_call
from aiengine.errors import Cancelled, ToolExecutionError
from aiengine.schemas import DoneEvent, TokenEvent, ToolEvent

if TYPE_CHECKING:
    from aiengine.agents.router import Router
    from aiengine.schemas import EngineOutput, Prompt, ToolCall
    from aiengine.tools import ToolRegistry

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    GENERATING = "generating"
    TOOL_EXECUTING = "tool_executing"
    DONE = "done"


def _deadline_passed(deadline: float | None) -> bool:
    return deadline is not None and asyncio.get_running_loop().time() >= deadline


class AgentLoop:
    """Single-shot: build one per request."""

    def __init__(self, router: Router, registry: ToolRegistry):
        self.router = router
        self.registry = registry
        self.state: LoopState | None = None

    def _transition(self, state: LoopState) -> None:
        logger.debug(f"Agent loop: {self.state.value if self.state else 'idle'} → {state.value}")
        self.state = state

    async def run(
        self, prompt: Prompt, deadline: float | None = None
    ) -> AsyncIterator[EngineOutput]:
        """Yield token events, then at most one tool event, then done.

        The user turn of ``prompt`` is the routing signal.
        Raises ``BackendError`` if the backend fails and ``Cancelled`` if the
        deadline expires; in both cases no ``done`` is emitted.
        """
        if self.state is not None:
            raise RuntimeError("AgentLoop is single-shot; build a new one per request")
        self._transition(LoopState.GENERATING)

        adapter = self.router.choose(prompt.user)
        buffer: list[str] = []

        async with aclosing(adapter.stream(prompt)) as fragments:
            while True:
                try:
                    async with asyncio.timeout_at(deadline) as budget:
                        fragment = await anext(fragments)
                except StopAsyncIteration:
                    break
                except TimeoutError as e:
                    if not budget.expired():
                        raise
                    logger.warning(f"Deadline expired while streaming from '{adapter.name}'")
                    raise Cancelled("Deadline expired during generation") from e
                buffer.append(fragment)
                yield TokenEvent(content=fragment)

        self._transition(LoopState.TOOL_EXECUTING)
        if _deadline_passed(deadline):
            raise Cancelled("Deadline expired before tool execution")

        call = parse_tool_call("".join(buffer))
        if call is not None:
            content = await self._execute(call, deadline)
            yield ToolEvent(content=content)

        self._transition(LoopState.DONE)
        yield DoneEvent()

    async def _execute(self, call: ToolCall, deadline: float | None) -> str:
        """Run the tool; failures become a JSON error payload, not an abort."""
        try:
            async with asyncio.timeout_at(deadline):
                return await self.registry.invoke(call)
        except TimeoutError as e:
            raise Cancelled(f"Deadline expired while running tool '{call.tool}'") from e
        except ToolExecutionError as e:
            logger.warning(f"Tool '{call.tool}' failed: {e.message}")
            return json.dumps({**e.to_dict(), "tool": call.tool}, ensure_ascii=False)
