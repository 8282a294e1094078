from __future__ import annotations

from collections.abc import Sequence
import math
import re

from rag_visualizer.services.rag.types import Document

_LEADING_INTEGER = re.compile(r"\s*([+-]?\d+)")

SAMPLE_DOCUMENTS: tuple[Document, ...] = (
    Document(
        id=1,
        title="Arrays and Time Complexity",
        content=(
            "Arrays are fundamental data structures that store elements in contiguous memory "
            "locations. They provide O(1) access time for elements when the index is known. "
            "However, insertion and deletion operations can be O(n) in the worst case."
        ),
        chunks=(
            "Arrays are fundamental data structures that store elements in contiguous memory locations.",
            "They provide O(1) access time for elements when the index is known.",
            "However, insertion and deletion operations can be O(n) in the worst case.",
        ),
    ),
    Document(
        id=2,
        title="Binary Search Algorithm",
        content=(
            "Binary search is an efficient algorithm for finding an item from a sorted list of "
            "items. It works by repeatedly dividing the search interval in half. Time complexity: "
            "O(log n). The algorithm compares the target value to the middle element of the array."
        ),
        chunks=(
            "Binary search is an efficient algorithm for finding an item from a sorted list of items.",
            "It works by repeatedly dividing the search interval in half. Time complexity: O(log n).",
            "The algorithm compares the target value to the middle element of the array.",
        ),
    ),
    Document(
        id=3,
        title="Hash Tables and Hash Functions",
        content=(
            "Hash tables use hash functions to compute an index into an array of buckets or "
            "slots. They provide average O(1) time complexity for insertions, deletions, and "
            "lookups. Collision handling is important for maintaining performance."
        ),
        chunks=(
            "Hash tables use hash functions to compute an index into an array of buckets or slots.",
            "They provide average O(1) time complexity for insertions, deletions, and lookups.",
            "Collision handling is important for maintaining performance.",
        ),
    ),
)

# Unsplit text for the CLI walkthrough, so the chunker does the splitting.
DEMO_DOCUMENT = Document(
    id=0,
    title="DSA Primer",
    content=(
        "Arrays are fundamental data structures that store elements in contiguous memory locations. "
        "They provide O(1) access time for elements when the index is known. However, insertion and "
        "deletion operations can be O(n) in the worst case when elements need to be shifted. "
        "Binary search is an efficient algorithm for finding an item from a sorted list of items. "
        "It works by repeatedly dividing the search interval in half. The time complexity is O(log n), "
        "making it much faster than linear search for large datasets."
    ),
)


def parse_document_id(value: object) -> int | None:
    """Read a client-supplied id the way a leading-integer parse would.

    Floats truncate toward zero and strings use their leading digits, so
    ``1.0``, ``"1"`` and ``"1abc"`` all name document 1.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _LEADING_INTEGER.match(value)
        return int(match.group(1)) if match else None
    return None


def find_document(documents: Sequence[Document], document_id: object) -> Document | None:
    parsed = parse_document_id(document_id)
    if parsed is None:
        return None
    for document in documents:
        if document.id == parsed:
            return document
    return None


def sample_data_payload(documents: Sequence[Document]) -> dict[str, list[dict[str, object]]]:
    return {"documents": [document.to_dict() for document in documents]}
