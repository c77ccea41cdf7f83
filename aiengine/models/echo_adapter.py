"""Offline echo backend — streams the user turn back word by word.

Needs no credentials; useful for local development and smoke runs.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from aiengine.schemas import Prompt

if TYPE_CHECKING:
    from aiengine.config import BackendConfig

_WORD_RE = re.compile(r"\s*\S+\s*")


class EchoAdapter:
    name = "echo"

    def __init__(self, client: None = None):
        self.client = client

    @staticmethod
    def create_client(backend: BackendConfig) -> None:
        return None

    async def stream(self, prompt: Prompt) -> AsyncIterator[str]:
        for fragment in _WORD_RE.findall(prompt.user):
            await asyncio.sleep(0)
            yield fragment
