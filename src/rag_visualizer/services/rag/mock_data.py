"""Offline stand-ins for the embedding, vector search and generation providers."""

from __future__ import annotations

from collections.abc import Sequence
import random

from rag_visualizer.services.rag.types import Document, EmbeddingVector, SearchMatch

MOCK_VECTOR_DIMENSION = 8

# Order matters: the first key found in the question wins.
MOCK_RESPONSES: dict[str, str] = {
    "binary search": (
        "Binary search has O(log n) time complexity. It works by repeatedly dividing the "
        "search interval in half."
    ),
    "hash table": (
        "Hash tables provide O(1) average time complexity for insertions, deletions, and "
        "lookups using hash functions."
    ),
    "array": (
        "Arrays provide O(1) access time when the index is known, but insertions and "
        "deletions can be O(n)."
    ),
    "time complexity": (
        "Time complexity describes how the runtime of an algorithm grows with input size."
    ),
}

GENERIC_RESPONSE = (
    "Based on the provided context about data structures and algorithms, I can help answer "
    "questions about arrays, search algorithms, hash tables, and time complexity analysis."
)


def generate_mock_vector(
    dimension: int = MOCK_VECTOR_DIMENSION,
    rng: random.Random | None = None,
) -> EmbeddingVector:
    if dimension <= 0:
        raise ValueError("dimension must be > 0")
    source = rng or random
    return [source.uniform(-1.0, 1.0) for _ in range(dimension)]


def mock_search_matches(documents: Sequence[Document], top_k: int) -> list[SearchMatch]:
    return [
        SearchMatch(
            id=str(document.id),
            score=round(0.9 - rank * 0.1, 10),
            text=document.content,
            metadata={"title": document.title, "text": document.content},
        )
        for rank, document in enumerate(documents[: max(0, top_k)])
    ]


def generate_mock_response(question: str) -> str:
    lowered = question.lower()
    for keyword, answer in MOCK_RESPONSES.items():
        if keyword in lowered:
            return answer
    return GENERIC_RESPONSE
