"""aiengine — FastAPI app around the request-orchestration engine.

Loads config.yaml on startup. Exposes /chat for SSE streaming, /ingest for
repository ingestion, plus operational endpoints for health, config viewing,
usage, and hot-reload. The scheduler re-ingests configured repositories.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from aiengine.config import get_config, load_config, reload_config
from aiengine.context.ingest import ingest_repo
from aiengine.engine import parse_input
from aiengine.errors import IngestionError, ValidationError
from aiengine.models import cache as client_cache
from aiengine.runtime import Runtime, build_runtime, stream_sse
from aiengine.scheduler import setup_scheduler
from aiengine.schemas import ChatRequest, IngestRequest, IngestResponse

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the runtime, start the audit drain and the scheduler."""
    config = load_config()
    runtime = build_runtime(config)
    if runtime.audit:
        runtime.audit.start()
    scheduler = setup_scheduler(runtime)
    scheduler.start()
    app.state.runtime = runtime
    app.state.scheduler = scheduler
    logger.info(
        f"aiengine started (origins={config.allowed_origins}, "
        f"auth={'enabled' if config.api_key else 'disabled'}, "
        f"audit={'enabled' if config.audit.enabled else 'disabled'}, "
        f"ingest_schedules={len(config.ingest_schedules)})"
    )
    yield
    app.state.scheduler.shutdown()
    if app.state.runtime.audit:
        await app.state.runtime.audit.stop()
    logger.info("aiengine shutting down")


# Load config early so we can read allowed_origins for CORS middleware.
_boot_config = load_config()

app = FastAPI(title="aiengine", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_boot_config.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Auth, identity and rate limiting
# ---------------------------------------------------------------------------


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


async def verify_api_key(request: Request) -> None:
    """Validate X-API-Key header against the configured key.
    If no api_key is set in config, auth is disabled (dev mode).
    """
    config = get_config()
    if not config.api_key:
        return  # Auth disabled: no key configured

    key = request.headers.get("X-API-Key")
    if key != config.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def caller_identity(request: Request) -> str:
    """Counter key: the API key if present, else the client address."""
    key = request.headers.get("X-API-Key")
    if key:
        return f"key:{key}"
    return f"ip:{request.client.host}" if request.client else "anonymous"


async def enforce_rate_limit(request: Request) -> None:
    runtime = get_runtime(request)
    identity = caller_identity(request)
    allowed, _remaining = runtime.rate_limiter.hit(identity)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(runtime.rate_limiter.retry_after(identity))},
        )
    runtime.usage.increment(identity)


# ---------------------------------------------------------------------------
# Engine endpoints
# ---------------------------------------------------------------------------


@app.post("/chat", dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)])
async def chat(body: ChatRequest, request: Request):
    """Run the engine for one message and stream its events as SSE frames."""
    runtime = get_runtime(request)
    try:
        engine_input = parse_input({
            "user_message": body.message,
            "session_id": body.session_id or str(uuid.uuid4()),
            "files": [f.model_dump() for f in body.files],
        })
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())

    return StreamingResponse(
        stream_sse(runtime.engine, engine_input, timeout=body.timeout_seconds),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@app.post(
    "/ingest",
    response_model=IngestResponse,
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)
async def ingest(
    body: IngestRequest,
    request: Request,
    x_workspace_id: str = Header(default="default"),
):
    """Clone a repository and index its text files for retrieval."""
    runtime = get_runtime(request)
    try:
        count = await ingest_repo(
            body.repo_url,
            runtime.retrieval,
            workspace=x_workspace_id,
            config=runtime.config.ingest,
        )
    except IngestionError as e:
        logger.error(f"Ingest failed: {e.message}")
        raise HTTPException(status_code=502, detail=e.to_dict())
    return IngestResponse(files_indexed=count)


# ---------------------------------------------------------------------------
# Operational endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    """Liveness check."""
    config = get_config()
    return {
        "status": "healthy",
        "deliberate": config.backends.deliberate.provider,
        "fast": config.backends.fast.provider,
        "retrieval": config.retrieval.provider,
    }


@app.get("/config")
async def get_current_config():
    """Return current config as JSON (API key redacted)."""
    config = get_config()
    return config.model_dump(exclude={"api_key"})


@app.get("/usage", dependencies=[Depends(verify_api_key)])
async def usage(request: Request):
    """Request count for the calling identity."""
    identity = caller_identity(request)
    return {"requests": get_runtime(request).usage.get(identity)}


@app.post("/reload", dependencies=[Depends(verify_api_key)])
async def reload(request: Request):
    """Re-read config.yaml and swap in a freshly built runtime.

    The client cache is invalidated; the retrieval index, usage counts and
    the audit queue carry over. The scheduler is restarted.
    """
    try:
        new_config = reload_config()
        client_cache.invalidate()

        old = get_runtime(request)
        request.app.state.scheduler.shutdown(wait=False)

        # Runs still streaming on the old engine keep emitting into this sink.
        audit = old.audit if new_config.audit.enabled else None
        if old.audit and audit is None:
            await old.audit.stop()

        runtime = build_runtime(
            new_config, retrieval=old.retrieval, usage=old.usage, audit=audit
        )
        if runtime.audit:
            runtime.audit.start()
        new_scheduler = setup_scheduler(runtime)
        new_scheduler.start()
        request.app.state.runtime = runtime
        request.app.state.scheduler = new_scheduler

        return {
            "status": "reloaded",
            "deliberate": new_config.backends.deliberate.provider,
            "fast": new_config.backends.fast.provider,
        }
    except Exception as e:
        logger.error(f"Reload failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Reload failed: {e}")
