from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime, timezone
import logging
from time import perf_counter
from typing import Any

from rag_visualizer.errors import DocumentNotFoundError, ValidationError
from rag_visualizer.services.rag.chunker import chunk_document
from rag_visualizer.services.rag.gateway import ProviderGateway
from rag_visualizer.services.rag.mock_data import generate_mock_response, generate_mock_vector
from rag_visualizer.services.rag.sample_data import find_document
from rag_visualizer.services.rag.types import (
    Document,
    EmbeddingVector,
    PipelineKind,
    PipelineResult,
    StageDefinition,
    StageName,
    StageResult,
    StageStatus,
)

logger = logging.getLogger(__name__)

StageObserver = Callable[[StageResult], Awaitable[None]]
StagePacer = Callable[[StageDefinition], Awaitable[None]]
StageWork = Callable[[], Awaitable[None]]
StageFallback = Callable[[], None]

MAX_QUESTION_LENGTH = 1000
CONTEXT_SEPARATOR = "\n\n---\n\n"

INDEXING_STAGES: tuple[StageDefinition, ...] = (
    StageDefinition(StageName.LOADING, "Document Loading", "Loading PDF document...", "file-pdf"),
    StageDefinition(StageName.CHUNKING, "Text Chunking", "Splitting text into chunks...", "cut"),
    StageDefinition(
        StageName.EMBEDDING, "Vector Embedding", "Generating vector embeddings...", "vector-square"
    ),
    StageDefinition(StageName.STORAGE, "Database Storage", "Storing vectors in database...", "database"),
)

QUERY_STAGES: tuple[StageDefinition, ...] = (
    StageDefinition(
        StageName.EMBEDDING, "Query Embedding", "Converting query to vector...", "vector-square"
    ),
    StageDefinition(StageName.SEARCH, "Vector Search", "Searching similar vectors...", "search"),
    StageDefinition(
        StageName.RETRIEVAL, "Context Retrieval", "Retrieving relevant context...", "download"
    ),
    StageDefinition(StageName.GENERATION, "Response Generation", "Generating AI response...", "brain"),
)


def validate_question(question: object, *, max_length: int = MAX_QUESTION_LENGTH) -> str:
    if not isinstance(question, str) or not question.strip():
        raise ValidationError(
            "INVALID_INPUT",
            "Question is required and must be a non-empty string",
        )
    if len(question) > max_length:
        raise ValidationError(
            "QUESTION_TOO_LONG",
            f"Question too long. Maximum {max_length} characters allowed.",
        )
    return question


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _elapsed_ms(started: float) -> float:
    return round((perf_counter() - started) * 1000, 3)


class PipelineOrchestrator:
    """Runs the indexing and query pipelines one stage at a time.

    Each stage reports ``processing`` then ``completed`` (or ``failed``) to the
    optional observer. A failing stage falls back to a safe default and the
    run continues; only an unknown document aborts an indexing run.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        documents: Sequence[Document],
        *,
        chunk_max_length: int = 100,
        top_k: int = 3,
    ) -> None:
        self._gateway = gateway
        self._documents = tuple(documents)
        self._chunk_max_length = chunk_max_length
        self._top_k = top_k

    @property
    def documents(self) -> tuple[Document, ...]:
        return self._documents

    async def run(
        self,
        kind: PipelineKind | str,
        payload: Mapping[str, Any],
        *,
        observer: StageObserver | None = None,
        pacer: StagePacer | None = None,
        max_question_length: int = MAX_QUESTION_LENGTH,
    ) -> PipelineResult:
        pipeline_kind = PipelineKind(kind)
        result = PipelineResult(kind=pipeline_kind)

        if pipeline_kind is PipelineKind.QUERY:
            result.question = validate_question(payload.get("question"), max_length=max_question_length)
            steps = self._query_steps(result)
            definitions = QUERY_STAGES
        else:
            steps = self._indexing_steps(result, payload.get("documentId"))
            definitions = INDEXING_STAGES

        started = perf_counter()
        for definition, (work, fallback) in zip(definitions, steps):
            await self._run_stage(result, definition, work, fallback, observer=observer, pacer=pacer)
        result.total_ms = _elapsed_ms(started)

        logger.debug(
            "%s pipeline finished in %.1fms (%d failed stages)",
            pipeline_kind.value,
            result.total_ms,
            len(result.failed_stages),
        )
        return result

    async def _run_stage(
        self,
        result: PipelineResult,
        definition: StageDefinition,
        work: StageWork,
        fallback: StageFallback,
        *,
        observer: StageObserver | None,
        pacer: StagePacer | None,
    ) -> None:
        await self._emit(observer, self._stage_result(definition, StageStatus.PROCESSING))
        started = perf_counter()

        try:
            await work()
        except (DocumentNotFoundError, ValidationError) as exc:
            failed = self._stage_result(
                definition, StageStatus.FAILED, duration_ms=_elapsed_ms(started), error=str(exc)
            )
            result.stages.append(failed)
            await self._emit(observer, failed)
            raise
        except Exception as exc:
            logger.exception("%s stage failed, continuing with fallback", definition.name.value)
            fallback()
            failed = self._stage_result(
                definition, StageStatus.FAILED, duration_ms=_elapsed_ms(started), error=str(exc)
            )
            result.stages.append(failed)
            await self._emit(observer, failed)
            return

        if pacer is not None:
            await pacer(definition)

        completed = self._stage_result(definition, StageStatus.COMPLETED, duration_ms=_elapsed_ms(started))
        result.stages.append(completed)
        await self._emit(observer, completed)

    @staticmethod
    def _stage_result(
        definition: StageDefinition,
        status: StageStatus,
        *,
        duration_ms: float = 0.0,
        error: str | None = None,
    ) -> StageResult:
        return StageResult(
            stage=definition.name,
            status=status,
            label=definition.label,
            message=definition.message,
            icon=definition.icon,
            timestamp=_now_iso(),
            duration_ms=duration_ms,
            error=error,
        )

    @staticmethod
    async def _emit(observer: StageObserver | None, stage: StageResult) -> None:
        if observer is not None:
            await observer(stage)

    def _indexing_steps(
        self, result: PipelineResult, document_id: object
    ) -> list[tuple[StageWork, StageFallback]]:
        vectors: list[EmbeddingVector] = []

        async def load() -> None:
            document = find_document(self._documents, document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)
            result.document = document

        async def chunk() -> None:
            if result.document is None:
                raise DocumentNotFoundError(document_id)
            result.chunks = chunk_document(result.document, max_length=self._chunk_max_length)

        def no_chunks() -> None:
            result.chunks = []

        async def embed() -> None:
            for item in result.chunks:
                vectors.append(await self._gateway.embed(item.text))

        def mock_vectors() -> None:
            vectors[:] = [generate_mock_vector() for _ in result.chunks]

        async def store() -> None:
            if len(vectors) != len(result.chunks):
                raise ValueError("chunks and embeddings must have the same length")
            result.chunks = [
                replace(item, embedding=vector) for item, vector in zip(result.chunks, vectors)
            ]
            if vectors:
                result.vector = vectors[0]

        def keep_unstored() -> None:
            pass

        return [
            (load, keep_unstored),
            (chunk, no_chunks),
            (embed, mock_vectors),
            (store, keep_unstored),
        ]

    def _query_steps(self, result: PipelineResult) -> list[tuple[StageWork, StageFallback]]:
        question = result.question or ""

        async def embed() -> None:
            result.vector = await self._gateway.embed(question)

        def mock_vector() -> None:
            result.vector = generate_mock_vector()

        async def search() -> None:
            result.matches = await self._gateway.search(result.vector, self._top_k)

        def no_matches() -> None:
            result.matches = []

        async def retrieve() -> None:
            result.context = CONTEXT_SEPARATOR.join(match.text for match in result.matches)

        def empty_context() -> None:
            result.context = ""

        async def generate() -> None:
            result.response = await self._gateway.generate(question, result.context)

        def canned_response() -> None:
            result.response = generate_mock_response(question)

        return [
            (embed, mock_vector),
            (search, no_matches),
            (retrieve, empty_context),
            (generate, canned_response),
        ]
