"""Anthropic backend — the deliberate tier by default.

Requires: ANTHROPIC_API_KEY environment variable.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from langchain_anthropic import ChatAnthropic

from aiengine.models.base import stream_chat_model
from aiengine.schemas import Prompt

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from aiengine.config import BackendConfig


class AnthropicAdapter:
    name = "anthropic"

    def __init__(self, client: BaseChatModel):
        self.client = client

    @staticmethod
    def create_client(backend: BackendConfig) -> ChatAnthropic:
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise RuntimeError("ANTHROPIC_API_KEY environment variable is not set")
        kwargs = {}
        if backend.temperature is not None:
            kwargs["temperature"] = backend.temperature
        return ChatAnthropic(
            model=backend.model,
            max_tokens=backend.max_tokens,
            api_key=api_key,
            **kwargs,
        )

    def stream(self, prompt: Prompt) -> AsyncIterator[str]:
        return stream_chat_model(self.client, prompt, self.name)
