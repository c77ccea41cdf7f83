"""Runtime — builds the engine from config and bridges it to SSE.

Holds everything one process shares across requests: the engine, the
retrieval index, the audit queue, and the injected counter services.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing
from dataclasses import dataclass
from typing import TYPE_CHECKING

from aiengine.agents.router import Router
from aiengine.audit import LogAuditSink, QueuedAuditSink
from aiengine.context.retrieval import RetrievalService, build_retrieval
from aiengine.counters import InMemoryCounterService, RateLimiter
from aiengine.engine import Engine
from aiengine.errors import BackendError, Cancelled
from aiengine.models.registry import adapter_factory
from aiengine.schemas import StreamChunk
from aiengine.tools import ToolRegistry

if TYPE_CHECKING:
    from aiengine.config import EngineConfig
    from aiengine.schemas import EngineInput

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    config: EngineConfig
    engine: Engine
    retrieval: RetrievalService
    audit: QueuedAuditSink | None
    rate_limiter: RateLimiter
    usage: InMemoryCounterService


def build_runtime(
    config: EngineConfig,
    retrieval: RetrievalService | None = None,
    usage: InMemoryCounterService | None = None,
    audit: QueuedAuditSink | None = None,
) -> Runtime:
    """Wire the engine from config.

    Pass ``retrieval`` / ``usage`` / ``audit`` to carry the index, usage counts
    and the running audit queue over a config reload. ``audit`` is ignored
    when auditing is disabled.
    """
    retrieval = retrieval or build_retrieval(config.retrieval)
    router = Router(
        config.router,
        {
            "deliberate": adapter_factory(config.backends.deliberate),
            "fast": adapter_factory(config.backends.fast),
        },
    )
    if config.audit.enabled:
        audit = audit or QueuedAuditSink(LogAuditSink(), maxsize=config.audit.queue_size)
    else:
        audit = None
    engine = Engine(
        retrieval=retrieval,
        router=router,
        registry=ToolRegistry(config.tools.root),
        system_preamble=config.prompt.system_preamble,
        audit=audit,
    )
    return Runtime(
        config=config,
        engine=engine,
        retrieval=retrieval,
        audit=audit,
        rate_limiter=RateLimiter(limit=config.rate_limit.requests_per_minute),
        usage=usage or InMemoryCounterService(),
    )


def sse_frame(chunk: StreamChunk) -> str:
    data = json.dumps(chunk.model_dump(exclude_none=True), ensure_ascii=False)
    return f"data: {data}\n\n"


async def stream_sse(
    engine: Engine,
    engine_input: EngineInput,
    timeout: float | None = None,
) -> AsyncGenerator[str, None]:
    """Frame engine events as SSE.

    A backend failure or an expired deadline ends the stream with a single
    ``error`` frame instead of ``done``.
    """
    deadline = asyncio.get_running_loop().time() + timeout if timeout else None
    try:
        async with aclosing(engine.run(engine_input, deadline=deadline)) as events:
            async for event in events:
                yield sse_frame(StreamChunk(**event.model_dump()))
    except (BackendError, Cancelled) as e:
        logger.error(f"Run failed: session={engine_input.session_id[:8]}, {e.error_code}: {e}")
        yield sse_frame(StreamChunk(type="error", content=e.message, error=e.to_dict()))
