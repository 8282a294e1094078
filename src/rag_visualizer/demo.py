from __future__ import annotations

import argparse
import asyncio
import sys

from rag_visualizer.config import get_settings
from rag_visualizer.logging_setup import configure_logging
from rag_visualizer.services.rag.gateway import build_gateway
from rag_visualizer.services.rag.orchestrator import PipelineOrchestrator
from rag_visualizer.services.rag.sample_data import DEMO_DOCUMENT
from rag_visualizer.services.rag.types import PipelineKind, PipelineResult, StageResult, StageStatus

DEFAULT_QUESTION = "What is the time complexity of binary search?"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rag-visualizer-demo",
        description="Walk through the RAG indexing and query pipelines in the terminal",
    )
    parser.add_argument("--question", default=DEFAULT_QUESTION, help="Question for the query pipeline")
    parser.add_argument(
        "--max-length",
        type=int,
        default=None,
        help="Maximum chunk length in characters (defaults to CHUNK_MAX_LENGTH)",
    )
    return parser


def _format_vector(vector: list[float], size: int = 4) -> str:
    return "[" + ", ".join(f"{value:.3f}" for value in vector[:size]) + ", ...]"


async def _print_stage(stage: StageResult) -> None:
    if stage.status is StageStatus.PROCESSING:
        print(f"  -> {stage.label}: {stage.message}", flush=True)
    elif stage.status is StageStatus.COMPLETED:
        print(f"     done in {stage.duration_ms:.1f}ms", flush=True)
    else:
        print(f"     failed ({stage.error}), continuing with fallback", flush=True)


def _print_indexing(result: PipelineResult) -> None:
    for chunk in result.chunks:
        preview = chunk.text[:50]
        vector = _format_vector(chunk.embedding or [])
        print(f"     chunk {chunk.chunk_id}: \"{preview}...\" {vector}", flush=True)


def _print_query(result: PipelineResult) -> None:
    for index, match in enumerate(result.matches, start=1):
        print(f"     match {index}: score {match.score:.3f} - \"{match.text[:60]}...\"", flush=True)
    print(f"     context: {len(result.context)} characters", flush=True)
    print(f"\nResponse: {result.response}", flush=True)


async def run_demo(question: str, *, max_length: int | None = None) -> None:
    settings = get_settings()
    gateway = await build_gateway(settings, [DEMO_DOCUMENT])
    orchestrator = PipelineOrchestrator(
        gateway,
        [DEMO_DOCUMENT],
        chunk_max_length=max_length or settings.chunk_max_length,
        top_k=settings.search_top_k,
    )

    features = gateway.describe()
    if not any(features.values()):
        print("No providers configured, running with mock data\n", flush=True)

    print("=== Document processing ===", flush=True)
    indexing = await orchestrator.run(
        PipelineKind.INDEXING,
        {"documentId": DEMO_DOCUMENT.id},
        observer=_print_stage,
    )
    _print_indexing(indexing)

    print(f"\n=== Query processing: \"{question}\" ===", flush=True)
    result = await orchestrator.run(PipelineKind.QUERY, {"question": question}, observer=_print_stage)
    _print_query(result)

    print(
        f"\nIndexed {len(indexing.chunks)} chunks in {indexing.total_ms:.1f}ms, "
        f"answered in {result.total_ms:.1f}ms",
        flush=True,
    )


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    configure_logging(get_settings())

    try:
        asyncio.run(run_demo(args.question, max_length=args.max_length))
    except Exception as exc:
        print(f"[rag-visualizer-demo] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
