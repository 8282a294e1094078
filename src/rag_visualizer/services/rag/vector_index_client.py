from __future__ import annotations

from typing import Any, Protocol

import httpx

from rag_visualizer.errors import ProviderError
from rag_visualizer.services.rag.types import SearchMatch

PINECONE_API_VERSION = "2024-07"


class VectorIndexClient(Protocol):
    async def query(self, vector: list[float], top_k: int) -> list[SearchMatch]: ...


class PineconeIndexClient:
    def __init__(
        self,
        *,
        api_key: str,
        index_name: str,
        controller_url: str = "https://api.pinecone.io",
        host: str | None = None,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._index_name = index_name
        self._controller_url = controller_url.rstrip("/")
        self._host = host
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def index_name(self) -> str:
        return self._index_name

    @property
    def host(self) -> str | None:
        return self._host

    def _headers(self) -> dict[str, str]:
        return {
            "Api-Key": self._api_key,
            "X-Pinecone-API-Version": PINECONE_API_VERSION,
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, headers=self._headers(), **kwargs)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderError(str(exc)) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"Invalid Pinecone payload from {url}: not JSON") from exc

    async def resolve_host(self) -> str:
        if self._host:
            return self._host

        payload = await self._request("GET", f"{self._controller_url}/indexes/{self._index_name}")
        host = payload.get("host") if isinstance(payload, dict) else None
        if not isinstance(host, str) or not host.strip():
            raise ProviderError(f"Invalid index description for {self._index_name!r}: missing host")

        self._host = host.strip()
        return self._host

    async def query(self, vector: list[float], top_k: int) -> list[SearchMatch]:
        host = await self.resolve_host()
        base = host if host.startswith(("http://", "https://")) else f"https://{host}"
        payload = await self._request(
            "POST",
            f"{base.rstrip('/')}/query",
            json={"vector": vector, "topK": top_k, "includeMetadata": True},
        )

        matches = payload.get("matches") if isinstance(payload, dict) else None
        if not isinstance(matches, list):
            raise ProviderError("Invalid query payload: missing matches")

        results: list[SearchMatch] = []
        for item in matches:
            if not isinstance(item, dict) or "id" not in item:
                continue
            metadata = item.get("metadata") if isinstance(item.get("metadata"), dict) else {}
            text = metadata.get("text")
            results.append(
                SearchMatch(
                    id=str(item["id"]),
                    score=float(item.get("score", 0.0)),
                    text=text if isinstance(text, str) else "",
                    metadata=dict(metadata),
                )
            )
        return results
