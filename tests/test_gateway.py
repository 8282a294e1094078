import httpx
import pytest

from rag_visualizer.config import get_settings
from rag_visualizer.errors import ProviderError
from rag_visualizer.services.rag.gateway import (
    NOT_FOUND_SENTENCE,
    FailureKind,
    ProviderGateway,
    _resolve_index_client,
    build_gateway,
)
from rag_visualizer.services.rag.mock_data import MOCK_RESPONSES
from rag_visualizer.services.rag.sample_data import SAMPLE_DOCUMENTS
from rag_visualizer.services.rag.types import SearchMatch
from rag_visualizer.services.rag.vector_index_client import PineconeIndexClient


class FakeEmbeddingClient:
    def __init__(self, vector: list[float] | None = None, error: Exception | None = None) -> None:
        self._vector = vector if vector is not None else [0.5] * 768
        self._error = error
        self.calls: list[str] = []

    async def embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        if self._error is not None:
            raise self._error
        return self._vector


class FakeIndexClient:
    def __init__(self, matches: list[SearchMatch] | None = None, error: Exception | None = None) -> None:
        self._matches = matches or []
        self._error = error

    async def query(self, vector: list[float], top_k: int) -> list[SearchMatch]:
        if self._error is not None:
            raise self._error
        return self._matches


class FakeGenerativeClient:
    def __init__(self, answer: str = "provider answer", error: Exception | None = None) -> None:
        self._answer = answer
        self._error = error
        self.calls: list[dict[str, object]] = []

    async def generate(
        self,
        *,
        prompt: str,
        system_instruction: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        self.calls.append(
            {
                "prompt": prompt,
                "system_instruction": system_instruction,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if self._error is not None:
            raise self._error
        return self._answer


@pytest.mark.asyncio
async def test_unconfigured_gateway_falls_back_for_every_capability(
    mock_gateway: ProviderGateway,
) -> None:
    embedded = await mock_gateway.embed_outcome("binary search")
    searched = await mock_gateway.search_outcome(embedded.value, 3)
    generated = await mock_gateway.generate_outcome("binary search cost?", "context")

    assert len(embedded.value) == 8
    assert all(-1.0 <= value <= 1.0 for value in embedded.value)
    assert [match.score for match in searched.value] == [0.9, 0.8, 0.7]
    assert generated.value == MOCK_RESPONSES["binary search"]
    for outcome in (embedded, searched, generated):
        assert outcome.used_fallback
        assert outcome.failure is FailureKind.NOT_CONFIGURED


@pytest.mark.asyncio
async def test_configured_gateway_passes_provider_results_through() -> None:
    matches = [
        SearchMatch(id="a", score=0.2, text="low"),
        SearchMatch(id="b", score=1.7, text="high"),
        SearchMatch(id="c", score=0.9, text="mid"),
    ]
    gateway = ProviderGateway(
        documents=SAMPLE_DOCUMENTS,
        embedding_client=FakeEmbeddingClient(vector=[0.1, 0.2, 0.3]),
        index_client=FakeIndexClient(matches=matches),
        generative_client=FakeGenerativeClient(answer="real answer"),
    )

    vector = await gateway.embed("question")
    ranked = await gateway.search(vector, 2)
    answer = await gateway.generate("question", "context")

    assert vector == [0.1, 0.2, 0.3]
    assert [(match.id, match.score) for match in ranked] == [("b", 1.7), ("c", 0.9)]
    assert answer == "real answer"
    assert gateway.describe() == {"embeddings": True, "vectorSearch": True, "generation": True}


@pytest.mark.asyncio
async def test_provider_errors_fall_back_per_capability() -> None:
    gateway = ProviderGateway(
        documents=SAMPLE_DOCUMENTS,
        embedding_client=FakeEmbeddingClient(error=ProviderError("quota exceeded")),
        index_client=FakeIndexClient(matches=[SearchMatch(id="x", score=0.5, text="real")]),
        generative_client=FakeGenerativeClient(error=RuntimeError("socket closed")),
    )

    embedded = await gateway.embed_outcome("question")
    searched = await gateway.search_outcome(embedded.value, 3)
    generated = await gateway.generate_outcome("hash table lookups?", "ctx")

    assert embedded.failure is FailureKind.PROVIDER_ERROR
    assert embedded.error == "quota exceeded"
    assert len(embedded.value) == 8
    assert searched.source == "provider"
    assert [match.id for match in searched.value] == ["x"]
    assert generated.failure is FailureKind.PROVIDER_ERROR
    assert generated.error == "socket closed"
    assert generated.value == MOCK_RESPONSES["hash table"]


@pytest.mark.asyncio
async def test_empty_provider_vector_counts_as_provider_error() -> None:
    gateway = ProviderGateway(
        documents=SAMPLE_DOCUMENTS,
        embedding_client=FakeEmbeddingClient(vector=[]),
    )

    outcome = await gateway.embed_outcome("question")

    assert outcome.failure is FailureKind.PROVIDER_ERROR
    assert len(outcome.value) == 8


@pytest.mark.asyncio
async def test_generate_binds_provider_to_context() -> None:
    generative = FakeGenerativeClient()
    gateway = ProviderGateway(documents=SAMPLE_DOCUMENTS, generative_client=generative)

    await gateway.generate("What is binary search?", "Binary search halves the interval.")

    call = generative.calls[0]
    assert call["prompt"] == "What is binary search?"
    assert "Binary search halves the interval." in str(call["system_instruction"])
    assert NOT_FOUND_SENTENCE in str(call["system_instruction"])
    assert call["max_tokens"] == 500
    assert call["temperature"] == 0.7


@pytest.mark.asyncio
async def test_generate_fallback_is_deterministic(mock_gateway: ProviderGateway) -> None:
    first = await mock_gateway.generate("Why are arrays fast?", "")
    second = await mock_gateway.generate("Why are arrays fast?", "")

    assert first == second == MOCK_RESPONSES["array"]


@pytest.mark.asyncio
async def test_build_gateway_without_credentials_runs_in_demo_mode() -> None:
    gateway = await build_gateway(get_settings(), SAMPLE_DOCUMENTS)

    assert gateway.describe() == {"embeddings": False, "vectorSearch": False, "generation": False}


@pytest.mark.asyncio
async def test_build_gateway_with_gemini_key_enables_embeddings_and_generation(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    get_settings.cache_clear()

    gateway = await build_gateway(get_settings(), SAMPLE_DOCUMENTS)

    assert gateway.describe() == {"embeddings": True, "vectorSearch": False, "generation": True}


@pytest.mark.asyncio
async def test_index_resolution_gives_up_after_configured_attempts() -> None:
    attempts: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(str(request.url))
        return httpx.Response(503)

    client = PineconeIndexClient(api_key="pc-key", index_name="dsa", transport=httpx.MockTransport(handler))

    resolved = await _resolve_index_client(client, attempts=3, backoff_seconds=0)

    assert resolved is None
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_index_resolution_returns_client_once_host_is_known() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"host": "dsa-abc.svc.pinecone.io"})

    client = PineconeIndexClient(api_key="pc-key", index_name="dsa", transport=httpx.MockTransport(handler))

    resolved = await _resolve_index_client(client, attempts=3, backoff_seconds=0)

    assert resolved is client
    assert client.host == "dsa-abc.svc.pinecone.io"
