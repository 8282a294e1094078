from __future__ import annotations

import re

from rag_visualizer.services.rag.types import Chunk, Document

_SENTENCE_BOUNDARY = re.compile(r"([.!?]+)")


def split_sentences(text: str) -> list[str]:
    """Split on runs of ``.``, ``!`` or ``?`` and normalise each terminator to a period.

    A trailing fragment with no terminator is kept as-is.
    """
    parts = _SENTENCE_BOUNDARY.split(text)
    sentences: list[str] = []
    for index in range(0, len(parts), 2):
        fragment = parts[index].strip()
        if not fragment:
            continue
        terminated = index + 1 < len(parts)
        sentences.append(f"{fragment}." if terminated else fragment)
    return sentences


def chunk_text(text: str, max_length: int) -> list[str]:
    """Greedily pack whole sentences into chunks of at most ``max_length`` characters.

    Boundaries only fall at sentence ends. A sentence that is longer than
    ``max_length`` on its own becomes a single oversized chunk.
    """
    if max_length <= 0:
        raise ValueError("max_length must be > 0")

    chunks: list[str] = []
    current = ""

    for sentence in split_sentences(text):
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) <= max_length:
            current = candidate
            continue

        if current:
            chunks.append(current)
        current = sentence

    if current:
        chunks.append(current)

    return chunks


def chunk_document(document: Document, *, max_length: int) -> list[Chunk]:
    texts = list(document.chunks) or chunk_text(document.content, max_length)
    return [
        Chunk(
            chunk_id=f"{document.id}-{index}",
            document_id=document.id,
            text=text,
        )
        for index, text in enumerate(texts)
    ]
