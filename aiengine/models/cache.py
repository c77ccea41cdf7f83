"""Client cache — one chat-model client per backend configuration.

Keyed by a hash of the backend config so a changed model or token limit
after /reload builds a fresh client.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from aiengine.config import BackendConfig

logger = logging.getLogger(__name__)

# Cache: {config_hash: client}
_cache: dict[str, Any] = {}


def _hash_backend(backend: BackendConfig) -> str:
    config_json = json.dumps(backend.model_dump(), sort_keys=True)
    return hashlib.sha256(config_json.encode()).hexdigest()[:16]


def get_or_build(backend: BackendConfig, create: Callable[[BackendConfig], Any]) -> Any:
    """Return the cached client for this backend, or create a new one."""
    config_hash = _hash_backend(backend)

    if config_hash in _cache:
        logger.debug(f"Client cache hit: {backend.provider}/{backend.model}")
        return _cache[config_hash]

    logger.info(f"Building client for {backend.provider}/{backend.model}")
    client = create(backend)
    _cache[config_hash] = client
    return client


def invalidate() -> None:
    """Drop every cached client."""
    _cache.clear()
    logger.info("Client cache invalidated")
