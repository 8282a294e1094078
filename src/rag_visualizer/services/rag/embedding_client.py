from __future__ import annotations

from typing import Protocol

import httpx

from rag_visualizer.errors import ProviderError


class EmbeddingClient(Protocol):
    async def embed_text(self, text: str) -> list[float]: ...


class GeminiEmbeddingClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        model: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    async def embed_text(self, text: str) -> list[float]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{self._base_url}/models/{self._model}:embedContent",
                    headers={"x-goog-api-key": self._api_key},
                    json={
                        "model": f"models/{self._model}",
                        "content": {"parts": [{"text": text}]},
                    },
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderError(str(exc)) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("Invalid embeddings payload: not JSON") from exc

        embedding = payload.get("embedding") if isinstance(payload, dict) else None
        values = embedding.get("values") if isinstance(embedding, dict) else None
        if not isinstance(values, list) or not values:
            raise ProviderError("Invalid embeddings payload: missing embedding vector")

        return [float(value) for value in values]
