from rag_visualizer.services.rag.chunker import chunk_document, chunk_text
from rag_visualizer.services.rag.gateway import ProviderGateway, build_gateway
from rag_visualizer.services.rag.orchestrator import PipelineOrchestrator, validate_question
from rag_visualizer.services.rag.sample_data import (
    SAMPLE_DOCUMENTS,
    find_document,
    sample_data_payload,
)
from rag_visualizer.services.rag.types import (
    Chunk,
    Document,
    PipelineKind,
    PipelineResult,
    SearchMatch,
    StageName,
    StageResult,
    StageStatus,
)

__all__ = [
    "Chunk",
    "Document",
    "PipelineKind",
    "PipelineOrchestrator",
    "PipelineResult",
    "ProviderGateway",
    "SAMPLE_DOCUMENTS",
    "SearchMatch",
    "StageName",
    "StageResult",
    "StageStatus",
    "build_gateway",
    "chunk_document",
    "chunk_text",
    "find_document",
    "sample_data_payload",
    "validate_question",
]
