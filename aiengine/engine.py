"""Engine — retrieval-augmented prompt building around the agent loop.

For one input: validate, audit the request, fetch retrieval context for the
user message, merge it (and any attached files) into the system preamble,
then stream the agent loop's events, auditing each one on the way out.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import aclosing
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from aiengine.agents.loop import AgentLoop
from aiengine.config import DEFAULT_SYSTEM_PREAMBLE
from aiengine.errors import Cancelled, RetrievalUnavailable, ValidationError
from aiengine.schemas import EngineInput, Prompt

if TYPE_CHECKING:
    from aiengine.agents.router import Router
    from aiengine.audit import AuditSink
    from aiengine.context.retrieval import RetrievalService
    from aiengine.schemas import EngineOutput
    from aiengine.tools import ToolRegistry

logger = logging.getLogger(__name__)


def parse_input(data: EngineInput | Mapping[str, Any]) -> EngineInput:
    """Validate raw input. Raises ``ValidationError`` naming the first bad field."""
    if isinstance(data, EngineInput):
        return data
    try:
        return EngineInput.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ValidationError(f"Invalid engine input: {first['msg']}", field=field) from e


def build_prompt(preamble: str, engine_input: EngineInput, context: str) -> Prompt:
    sections = [preamble]
    if context:
        sections.append(f"Relevant context:\n{context}")
    if engine_input.files:
        attached = "\n\n".join(
            f"--- {f.path} ---\n{f.content}" for f in engine_input.files
        )
        sections.append(f"Attached files:\n{attached}")
    return Prompt(system="\n\n".join(sections), user=engine_input.user_message)


class Engine:
    def __init__(
        self,
        retrieval: RetrievalService,
        router: Router,
        registry: ToolRegistry,
        system_preamble: str = DEFAULT_SYSTEM_PREAMBLE,
        audit: AuditSink | None = None,
    ):
        self.retrieval = retrieval
        self.router = router
        self.registry = registry
        self.system_preamble = system_preamble
        self.audit = audit

    def _audit(self, event: dict[str, Any]) -> None:
        if self.audit is None:
            return
        try:
            self.audit.emit(event)
        except Exception as e:
            logger.warning(f"Audit emit failed ({event.get('type')}): {e}")

    async def _retrieve(self, query: str, deadline: float | None) -> str:
        try:
            async with asyncio.timeout_at(deadline) as budget:
                return await self.retrieval.search(query)
        except TimeoutError as e:
            if budget.expired():
                raise Cancelled("Deadline expired during retrieval") from e
            logger.warning(f"Retrieval timed out, continuing without context: {e}")
        except RetrievalUnavailable as e:
            logger.warning(f"Retrieval unavailable, continuing without context: {e.message}")
        except Exception as e:
            logger.warning(f"Retrieval failed, continuing without context: {e}", exc_info=True)
        return ""

    async def run(
        self,
        engine_input: EngineInput | Mapping[str, Any],
        deadline: float | None = None,
    ) -> AsyncIterator[EngineOutput]:
        """Yield the agent loop's events for one request.

        Raises ``ValidationError`` before any work for malformed input;
        ``BackendError`` and ``Cancelled`` propagate from the agent loop.
        """
        engine_input = parse_input(engine_input)
        session = engine_input.session_id

        self._audit({
            "type": "request",
            "session_id": session,
            "user_message": engine_input.user_message,
            "files": [f.path for f in engine_input.files],
        })

        context = await self._retrieve(engine_input.user_message, deadline)
        logger.info(
            f"Running engine: session={session[:8]}, "
            f"message_length={len(engine_input.user_message)}, context_chars={len(context)}"
        )
        prompt = build_prompt(self.system_preamble, engine_input, context)

        loop = AgentLoop(self.router, self.registry)
        async with aclosing(loop.run(prompt, deadline)) as events:
            async for event in events:
                self._audit({
                    "type": "response_chunk",
                    "session_id": session,
                    "chunk": event.model_dump(),
                })
                yield event
