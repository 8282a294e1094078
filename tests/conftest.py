from collections.abc import Iterator
import random

import pytest
from fastapi.testclient import TestClient

from rag_visualizer.config import get_settings
from rag_visualizer.main import app
from rag_visualizer.services.rag.gateway import ProviderGateway
from rag_visualizer.services.rag.orchestrator import PipelineOrchestrator
from rag_visualizer.services.rag.sample_data import SAMPLE_DOCUMENTS

PROVIDER_ENV_VARS = (
    "APP_ENV",
    "NODE_ENV",
    "LOG_LEVEL",
    "GEMINI_API_KEY",
    "PINECONE_API_KEY",
    "PINECONE_INDEX_NAME",
    "API_RATE_LIMIT",
    "LIVE_INDEXING_LIMIT",
    "LIVE_QUERY_LIMIT",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LIVE_STAGE_DELAY_SCALE", "0")

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def mock_gateway() -> ProviderGateway:
    return ProviderGateway(documents=SAMPLE_DOCUMENTS, rng=random.Random(7))


@pytest.fixture
def orchestrator(mock_gateway: ProviderGateway) -> PipelineOrchestrator:
    return PipelineOrchestrator(mock_gateway, SAMPLE_DOCUMENTS, chunk_max_length=100, top_k=3)
