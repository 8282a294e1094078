from __future__ import annotations

from typing import Protocol

import httpx

from rag_visualizer.errors import ProviderError


class GenerativeClient(Protocol):
    async def generate(
        self,
        *,
        prompt: str,
        system_instruction: str,
        max_tokens: int,
        temperature: float,
    ) -> str: ...


class GeminiChatClient:
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

    async def generate(
        self,
        *,
        prompt: str,
        system_instruction: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{self._base_url}/models/{self._model}:generateContent",
                    headers={"x-goog-api-key": self._api_key},
                    json={
                        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                        "systemInstruction": {"parts": [{"text": system_instruction}]},
                        "generationConfig": {
                            "maxOutputTokens": max_tokens,
                            "temperature": temperature,
                        },
                    },
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderError(str(exc)) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("Invalid generation payload: not JSON") from exc

        candidates = payload.get("candidates") if isinstance(payload, dict) else None
        if not isinstance(candidates, list) or not candidates:
            raise ProviderError("Invalid generation payload: missing candidates")

        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            raise ProviderError("Invalid generation payload: missing content parts")

        text = "".join(
            part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
        if not text.strip():
            raise ProviderError("Invalid generation payload: empty response text")

        return text.strip()
