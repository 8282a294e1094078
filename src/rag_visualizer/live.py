"""Per-connection live demo sessions streamed over the WebSocket channel.

Wire format, both directions: ``{"event": <name>, "data": <object>}``.

Client -> server: ``start-indexing-demo {documentId?}``, ``start-query-demo {question}``.
Server -> client: ``processing-step``, ``step-progress``, ``indexing-complete``,
``query-step``, ``query-complete``, ``demo-error``, ``rate-limit-exceeded``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import random
from typing import Any

from rag_visualizer.config import Settings
from rag_visualizer.errors import DocumentNotFoundError, ValidationError
from rag_visualizer.rate_limit import SlidingWindowCounter, WindowState, monotonic_ms
from rag_visualizer.services.rag.orchestrator import (
    INDEXING_STAGES,
    PipelineOrchestrator,
    StagePacer,
)
from rag_visualizer.services.rag.types import (
    PipelineKind,
    PipelineResult,
    StageDefinition,
    StageName,
    StageResult,
    StageStatus,
)

logger = logging.getLogger(__name__)

Sender = Callable[[str, dict[str, Any]], Awaitable[None]]

START_INDEXING = "start-indexing-demo"
START_QUERY = "start-query-demo"

LIVE_MAX_QUESTION_LENGTH = 500
PROGRESS_INTERVAL_SECONDS = 0.2

INDEXING_DELAYS_MS: dict[StageName, int] = {
    StageName.LOADING: 2000,
    StageName.CHUNKING: 3000,
    StageName.EMBEDDING: 2500,
    StageName.STORAGE: 2000,
}

QUERY_DELAYS_MS: dict[StageName, int] = {
    StageName.EMBEDDING: 1000,
    StageName.SEARCH: 1500,
    StageName.RETRIEVAL: 800,
    StageName.GENERATION: 2000,
}

_ACTION_NAMES = {
    START_INDEXING: "indexing-demo",
    START_QUERY: "query-demo",
}


class ChannelClosedError(ConnectionError):
    """Raised by a sender once the underlying connection is gone."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _step_payload(stage: StageResult) -> dict[str, Any]:
    return {
        "step": stage.stage.value,
        "message": stage.message,
        "icon": stage.icon,
        "status": stage.status.value,
        "timestamp": stage.timestamp,
        "durationMs": stage.duration_ms,
    }


def synthetic_confidence(result: PipelineResult) -> float:
    if not result.matches:
        return 0.0
    mean = sum(match.score for match in result.matches) / len(result.matches)
    return round(min(1.0, max(0.0, mean)), 3)


@dataclass
class ConnectionState:
    connection_id: str
    connected_at_ms: float
    windows: dict[str, WindowState] = field(default_factory=dict)


class ConnectionSession:
    def __init__(
        self,
        connection_id: str,
        send: Sender,
        orchestrator: PipelineOrchestrator,
        *,
        settings: Settings,
        clock: Callable[[], float] = monotonic_ms,
        rng: random.Random | None = None,
    ) -> None:
        now = clock()
        self.state: ConnectionState | None = ConnectionState(
            connection_id=connection_id,
            connected_at_ms=now,
            windows={action: WindowState(last_request_ms=now) for action in _ACTION_NAMES},
        )
        self._send = send
        self._orchestrator = orchestrator
        self._settings = settings
        self._clock = clock
        self._rng = rng or random.Random()
        self._limiters = {
            START_INDEXING: SlidingWindowCounter(
                limit=settings.live_indexing_limit, window_ms=settings.live_rate_window_ms
            ),
            START_QUERY: SlidingWindowCounter(
                limit=settings.live_query_limit, window_ms=settings.live_rate_window_ms
            ),
        }
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def connection_id(self) -> str | None:
        return self.state.connection_id if self.state is not None else None

    @property
    def connected(self) -> bool:
        return self.state is not None

    def handle(self, event: str, data: object = None) -> asyncio.Task[None] | None:
        """Dispatch one client event. Must be called from the running event loop."""
        if self.state is None:
            return None

        runners: dict[str, Callable[[Mapping[str, Any]], Coroutine[Any, Any, None]]] = {
            START_INDEXING: self._run_indexing,
            START_QUERY: self._run_query,
        }
        runner = runners.get(event)
        if runner is None:
            logger.debug("connection %s sent unknown event %r", self.state.connection_id, event)
            return None

        limiter = self._limiters[event]
        if not limiter.hit(self.state.windows[event], self._clock()):
            logger.info("connection %s rate limited on %s", self.state.connection_id, event)
            return self._spawn(
                self.send(
                    "rate-limit-exceeded",
                    {
                        "message": (
                            f"Too many {_ACTION_NAMES[event]} requests. "
                            "Please wait before trying again."
                        ),
                        "retryAfter": limiter.window_ms,
                    },
                )
            )

        payload = data if isinstance(data, Mapping) else {}
        return self._spawn(runner(payload))

    async def send(self, event: str, data: dict[str, Any]) -> None:
        if self.state is None:
            return
        try:
            await self._send(event, data)
        except ChannelClosedError:
            logger.debug("connection %s closed while sending %s", self.state.connection_id, event)
            self.close()

    def close(self) -> None:
        if self.state is None:
            return
        logger.info("connection %s closed", self.state.connection_id)
        self.state = None

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _pacer(self, delays_ms: Mapping[StageName, int]) -> StagePacer:
        scale = self._settings.live_stage_delay_scale

        async def pace(definition: StageDefinition) -> None:
            delay = delays_ms.get(definition.name, 0) * scale / 1000
            if delay > 0:
                await asyncio.sleep(delay)

        return pace

    async def _tick_progress(self, stage: StageName) -> None:
        while self.connected:
            await asyncio.sleep(PROGRESS_INTERVAL_SECONDS)
            await self.send(
                "step-progress",
                {"step": stage.value, "progress": self._rng.uniform(0, 100)},
            )

    async def _run_indexing(self, data: Mapping[str, Any]) -> None:
        document_id = data.get("documentId")
        if document_id is None and self._orchestrator.documents:
            document_id = self._orchestrator.documents[0].id

        ticker: asyncio.Task[None] | None = None

        def stop_ticker() -> None:
            nonlocal ticker
            if ticker is not None:
                ticker.cancel()
                ticker = None

        async def observer(stage: StageResult) -> None:
            nonlocal ticker
            stop_ticker()
            if stage.status is StageStatus.PROCESSING:
                ticker = asyncio.create_task(self._tick_progress(stage.stage))
            await self.send("processing-step", _step_payload(stage))

        try:
            result = await self._orchestrator.run(
                PipelineKind.INDEXING,
                {"documentId": document_id},
                observer=observer,
                pacer=self._pacer(INDEXING_DELAYS_MS),
            )
        except DocumentNotFoundError:
            await self._demo_error("indexing", "Document not found")
            return
        except Exception:
            logger.exception("indexing demo failed")
            await self._demo_error("indexing", "An error occurred during the indexing demonstration")
            return
        finally:
            stop_ticker()

        document = result.document
        await self.send(
            "indexing-complete",
            {
                "documentId": document.id if document is not None else document_id,
                "title": document.title if document is not None else None,
                "totalSteps": len(INDEXING_STAGES),
                "chunkCount": len(result.chunks),
                "completedAt": _now_iso(),
                "summary": "Document successfully processed and indexed into vector database",
            },
        )

    async def _run_query(self, data: Mapping[str, Any]) -> None:
        question = data.get("question")
        if not isinstance(question, str) or not question or len(question) > LIVE_MAX_QUESTION_LENGTH:
            await self._demo_error("query", "Invalid question provided")
            return

        async def observer(stage: StageResult) -> None:
            await self.send("query-step", _step_payload(stage))

        try:
            result = await self._orchestrator.run(
                PipelineKind.QUERY,
                {"question": question},
                observer=observer,
                pacer=self._pacer(QUERY_DELAYS_MS),
                max_question_length=LIVE_MAX_QUESTION_LENGTH,
            )
        except ValidationError:
            await self._demo_error("query", "Invalid question provided")
            return
        except Exception:
            logger.exception("query demo failed")
            await self._demo_error("query", "An error occurred during the query demonstration")
            return

        await self.send(
            "query-complete",
            {
                "question": question,
                "response": result.response,
                "metadata": {
                    "processingTime": result.total_ms,
                    "stepsCompleted": len(result.completed_stages),
                    "confidence": synthetic_confidence(result),
                    "sources": [
                        str(match.metadata.get("title") or f"Document chunk {index + 1}")
                        for index, match in enumerate(result.matches)
                    ],
                },
                "completedAt": _now_iso(),
            },
        )

    async def _demo_error(self, demo_type: str, message: str) -> None:
        await self.send(
            "demo-error",
            {"type": demo_type, "message": message, "timestamp": _now_iso()},
        )
