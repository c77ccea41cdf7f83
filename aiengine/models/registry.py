"""Provider registry — the only place model backends are defined.

Tiers in config.yaml (``deliberate``, ``fast``) reference these providers by
name. Adding a backend means adding an adapter class and one entry here;
nothing in the agent loop branches on the provider.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from aiengine.models import cache as client_cache
from aiengine.models.anthropic_adapter import AnthropicAdapter
from aiengine.models.base import UnavailableAdapter
from aiengine.models.echo_adapter import EchoAdapter
from aiengine.models.openai_adapter import OpenAIAdapter

if TYPE_CHECKING:
    from aiengine.config import BackendConfig
    from aiengine.models.base import ModelAdapter

logger = logging.getLogger(__name__)


@dataclass
class ProviderDefinition:
    name: str
    description: str
    adapter: Any  # class with create_client(backend) and __init__(client)


PROVIDER_REGISTRY: dict[str, ProviderDefinition] = {
    "anthropic": ProviderDefinition(
        name="anthropic",
        description="Anthropic Claude models via langchain-anthropic.",
        adapter=AnthropicAdapter,
    ),
    "openai": ProviderDefinition(
        name="openai",
        description="OpenAI chat models via langchain-openai.",
        adapter=OpenAIAdapter,
    ),
    "echo": ProviderDefinition(
        name="echo",
        description="Offline backend that echoes the user turn (no credentials).",
        adapter=EchoAdapter,
    ),
}


def resolve_provider(name: str) -> ProviderDefinition:
    """Look up a provider by name. Raises ValueError if not found."""
    if name not in PROVIDER_REGISTRY:
        raise ValueError(
            f"Unknown provider '{name}'. "
            f"Available providers: {list(PROVIDER_REGISTRY.keys())}"
        )
    return PROVIDER_REGISTRY[name]


def adapter_factory(backend: BackendConfig) -> Callable[[], ModelAdapter]:
    """Return a zero-arg factory building a fresh adapter for this backend.

    Adapters are cheap and built per call; the underlying client (and its
    connection pool) is shared through the client cache. Building never
    fails: a client that cannot be created (missing credentials) yields an
    adapter whose stream raises ``BackendError``.
    """
    provider = resolve_provider(backend.provider)

    def build() -> ModelAdapter:
        try:
            client = client_cache.get_or_build(backend, provider.adapter.create_client)
        except RuntimeError as e:
            logger.warning(f"Cannot build {provider.name} client: {e}")
            return UnavailableAdapter(provider.name, str(e))
        return provider.adapter(client)

    return build
