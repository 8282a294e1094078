from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

EmbeddingVector = list[float]


class PipelineKind(str, Enum):
    INDEXING = "indexing"
    QUERY = "query"


class StageName(str, Enum):
    LOADING = "loading"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    STORAGE = "storage"
    SEARCH = "search"
    RETRIEVAL = "retrieval"
    GENERATION = "generation"


class StageStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Document:
    id: int
    title: str
    content: str
    chunks: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "chunks": list(self.chunks),
        }


@dataclass(frozen=True)
class Chunk:
    chunk_id: str
    document_id: int
    text: str
    embedding: EmbeddingVector | None = None


@dataclass(frozen=True)
class SearchMatch:
    id: str
    score: float
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StageDefinition:
    name: StageName
    label: str
    message: str
    icon: str


@dataclass(frozen=True)
class StageResult:
    stage: StageName
    status: StageStatus
    label: str
    message: str
    icon: str
    timestamp: str
    duration_ms: float = 0.0
    error: str | None = None


@dataclass
class PipelineResult:
    kind: PipelineKind
    question: str | None = None
    document: Document | None = None
    vector: EmbeddingVector = field(default_factory=list)
    matches: list[SearchMatch] = field(default_factory=list)
    context: str = ""
    response: str = ""
    chunks: list[Chunk] = field(default_factory=list)
    stages: list[StageResult] = field(default_factory=list)
    total_ms: float = 0.0

    @property
    def completed_stages(self) -> list[StageResult]:
        return [stage for stage in self.stages if stage.status is StageStatus.COMPLETED]

    @property
    def failed_stages(self) -> list[StageResult]:
        return [stage for stage in self.stages if stage.status is StageStatus.FAILED]
