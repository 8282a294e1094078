"""Fault-isolating access to the embedding, vector index and generation providers.

Every call goes through :meth:`ProviderGateway._guard`, which turns the
provider's answer or failure into a :class:`ProviderOutcome`. Failures are
logged and replaced with mock data, so the public methods never raise.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
import logging
import random
from typing import Generic, TypeVar

from rag_visualizer.config import Settings
from rag_visualizer.errors import ProviderError, ProviderNotConfiguredError
from rag_visualizer.llm import GeminiChatClient, GenerativeClient
from rag_visualizer.services.rag.embedding_client import EmbeddingClient, GeminiEmbeddingClient
from rag_visualizer.services.rag.mock_data import (
    generate_mock_response,
    generate_mock_vector,
    mock_search_matches,
)
from rag_visualizer.services.rag.types import Document, EmbeddingVector, SearchMatch
from rag_visualizer.services.rag.vector_index_client import PineconeIndexClient, VectorIndexClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_FOUND_SENTENCE = "I could not find the answer in the provided document."
GENERATION_MAX_TOKENS = 500
GENERATION_TEMPERATURE = 0.7


def build_system_instruction(context: str) -> str:
    return (
        "You are a Data Structure and Algorithm Expert.\n"
        "Answer the user's question based only on the provided context.\n"
        f'If the answer is not in the context, say "{NOT_FOUND_SENTENCE}"\n'
        "Keep your answers clear, concise, and educational.\n\n"
        f"Context: {context}"
    )


class FailureKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class ProviderOutcome(Generic[T]):
    value: T
    source: str
    failure: FailureKind | None = None
    error: str | None = None

    @property
    def used_fallback(self) -> bool:
        return self.source == "mock"


class ProviderGateway:
    def __init__(
        self,
        *,
        documents: Sequence[Document],
        embedding_client: EmbeddingClient | None = None,
        index_client: VectorIndexClient | None = None,
        generative_client: GenerativeClient | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._documents = tuple(documents)
        self._embedding_client = embedding_client
        self._index_client = index_client
        self._generative_client = generative_client
        self._rng = rng

    def describe(self) -> dict[str, bool]:
        return {
            "embeddings": self._embedding_client is not None,
            "vectorSearch": self._index_client is not None,
            "generation": self._generative_client is not None,
        }

    async def _guard(
        self,
        capability: str,
        call: Callable[[], Awaitable[T]] | None,
        fallback: Callable[[], T],
    ) -> ProviderOutcome[T]:
        try:
            if call is None:
                raise ProviderNotConfiguredError(f"{capability} provider not configured")
            value = await call()
        except ProviderNotConfiguredError as exc:
            logger.info("%s: %s, using mock fallback", capability, exc)
            return ProviderOutcome(
                value=fallback(),
                source="mock",
                failure=FailureKind.NOT_CONFIGURED,
                error=str(exc),
            )
        except Exception as exc:
            logger.warning("%s provider error, using mock fallback: %s", capability, exc)
            return ProviderOutcome(
                value=fallback(),
                source="mock",
                failure=FailureKind.PROVIDER_ERROR,
                error=str(exc) or type(exc).__name__,
            )
        return ProviderOutcome(value=value, source="provider")

    async def embed_outcome(self, text: str) -> ProviderOutcome[EmbeddingVector]:
        client = self._embedding_client
        call = None
        if client is not None:

            async def call() -> EmbeddingVector:
                vector = await client.embed_text(text)
                if not vector:
                    raise ProviderError("embedding provider returned an empty vector")
                return vector

        return await self._guard("embedding", call, lambda: generate_mock_vector(rng=self._rng))

    async def search_outcome(self, vector: EmbeddingVector, top_k: int) -> ProviderOutcome[list[SearchMatch]]:
        client = self._index_client
        call = None
        if client is not None:

            async def call() -> list[SearchMatch]:
                matches = await client.query(vector, top_k)
                return sorted(matches, key=lambda match: match.score, reverse=True)[:top_k]

        return await self._guard(
            "vector search",
            call,
            lambda: mock_search_matches(self._documents, top_k),
        )

    async def generate_outcome(self, question: str, context: str) -> ProviderOutcome[str]:
        client = self._generative_client
        call = None
        if client is not None:

            async def call() -> str:
                return await client.generate(
                    prompt=question,
                    system_instruction=build_system_instruction(context),
                    max_tokens=GENERATION_MAX_TOKENS,
                    temperature=GENERATION_TEMPERATURE,
                )

        return await self._guard("generation", call, lambda: generate_mock_response(question))

    async def embed(self, text: str) -> EmbeddingVector:
        return (await self.embed_outcome(text)).value

    async def search(self, vector: EmbeddingVector, top_k: int) -> list[SearchMatch]:
        return (await self.search_outcome(vector, top_k)).value

    async def generate(self, question: str, context: str) -> str:
        return (await self.generate_outcome(question, context)).value


async def _resolve_index_client(
    client: PineconeIndexClient,
    *,
    attempts: int,
    backoff_seconds: float,
) -> PineconeIndexClient | None:
    for attempt in range(1, attempts + 1):
        try:
            host = await client.resolve_host()
        except ProviderError as exc:
            logger.error(
                "Pinecone index %r lookup failed (attempt %d/%d): %s",
                client.index_name,
                attempt,
                attempts,
                exc,
            )
            if attempt < attempts:
                await asyncio.sleep(backoff_seconds * attempt)
            continue

        logger.info("Pinecone index %r resolved to %s", client.index_name, host)
        return client

    logger.warning("Vector index unavailable, running search in demo mode")
    return None


async def build_gateway(
    settings: Settings,
    documents: Sequence[Document],
    *,
    backoff_seconds: float = 2.0,
) -> ProviderGateway:
    embedding_client: EmbeddingClient | None = None
    generative_client: GenerativeClient | None = None
    index_client: VectorIndexClient | None = None

    if settings.gemini_api_key:
        embedding_client = GeminiEmbeddingClient(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            model=settings.gemini_embed_model,
            timeout_seconds=settings.provider_timeout_seconds,
        )
        generative_client = GeminiChatClient(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            model=settings.gemini_chat_model,
            timeout_seconds=settings.provider_timeout_seconds,
        )
    else:
        logger.warning("GEMINI_API_KEY not found, embeddings and generation use mock data")

    if settings.pinecone_api_key and settings.pinecone_index_name:
        index_client = await _resolve_index_client(
            PineconeIndexClient(
                api_key=settings.pinecone_api_key,
                index_name=settings.pinecone_index_name,
                controller_url=settings.pinecone_controller_url,
                timeout_seconds=settings.provider_timeout_seconds,
            ),
            attempts=settings.provider_init_attempts,
            backoff_seconds=backoff_seconds,
        )
    else:
        logger.warning("PINECONE_API_KEY or PINECONE_INDEX_NAME not found, search uses mock data")

    return ProviderGateway(
        documents=documents,
        embedding_client=embedding_client,
        index_client=index_client,
        generative_client=generative_client,
    )
