"""Retrieval service — the black-box context lookup used by the engine.

``search(query)`` returns the concatenated relevant passages (empty string if
nothing matches); ``index(key, text)`` ingests a document. The default
backend is a LangChain ``InMemoryVectorStore`` over OpenAI embeddings; any
other LangChain ``VectorStore`` can be plugged into ``VectorStoreRetrieval``.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Protocol

from langchain_core.vectorstores import InMemoryVectorStore

from aiengine.errors import RetrievalUnavailable

if TYPE_CHECKING:
    from langchain_core.vectorstores import VectorStore

    from aiengine.config import RetrievalConfig

logger = logging.getLogger(__name__)


class RetrievalService(Protocol):
    async def search(self, query: str) -> str: ...

    async def index(self, key: str, text: str) -> None: ...


class NullRetrieval:
    """No index at all: every search comes back empty."""

    async def search(self, query: str) -> str:
        return ""

    async def index(self, key: str, text: str) -> None:
        logger.debug(f"Retrieval disabled, not indexing '{key}'")


class VectorStoreRetrieval:
    def __init__(self, store: VectorStore, top_k: int = 5):
        self.store = store
        self.top_k = top_k

    async def search(self, query: str) -> str:
        try:
            docs = await self.store.asimilarity_search(query, k=self.top_k)
        except Exception as e:
            raise RetrievalUnavailable(f"Vector search failed: {e}") from e
        return "\n".join(doc.page_content for doc in docs if doc.page_content)

    async def index(self, key: str, text: str) -> None:
        """Upsert ``text`` under ``key``; re-indexing a key replaces it."""
        try:
            await self.store.aadd_texts([text], metadatas=[{"key": key}], ids=[key])
        except Exception as e:
            raise RetrievalUnavailable(f"Indexing '{key}' failed: {e}") from e


def build_retrieval(config: RetrievalConfig) -> RetrievalService:
    """Create the retrieval backend named in config."""
    if config.provider == "none":
        logger.info("Retrieval disabled (provider=none)")
        return NullRetrieval()

    if not os.environ.get("OPENAI_API_KEY"):
        logger.warning("OPENAI_API_KEY is not set, retrieval disabled, using empty context")
        return NullRetrieval()

    from langchain_openai import OpenAIEmbeddings

    embeddings = OpenAIEmbeddings(model=config.embedding_model)
    logger.info(
        f"Retrieval: in-memory vector store (embeddings={config.embedding_model}, "
        f"top_k={config.top_k})"
    )
    return VectorStoreRetrieval(InMemoryVectorStore(embeddings), top_k=config.top_k)
